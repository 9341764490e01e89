"""Configuration for AccessGate"""

from accessgate.config.loader import GateConfig, load_gate_config

__all__ = ["GateConfig", "load_gate_config"]
