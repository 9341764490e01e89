"""
AccessGate - startup access-gating bootstrap

Decides at application start whether to run in delegated mode (render a
remote URL) or fall back to local offline mode.
"""

__version__ = "0.1.0"
