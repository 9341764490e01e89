"""Tests for directive parsing and validity."""

import pytest

from accessgate.directive import Directive, is_absolute_url, parse_directive
from accessgate.errors import ParseError
from accessgate.reasons import ReasonCode

SECRET = "GJDFHDFHFDJGSDAGKGHK"


def test_parse_well_formed_body():
    directive = parse_directive(f"{SECRET}#https://example.com/app")

    assert directive == Directive(granted_token=SECRET, delegated_url="https://example.com/app")
    assert directive.is_valid_for(SECRET)


def test_parse_strips_surrounding_whitespace_and_newlines():
    directive = parse_directive(f"\n  {SECRET}#https://example.com/app?x=1 \r\n")

    assert directive.granted_token == SECRET
    assert directive.delegated_url == "https://example.com/app?x=1"


@pytest.mark.parametrize(
    "body",
    [
        "",
        "   \n",
        "garbage",
        "https://example.com/app",
        f"{SECRET}#https://example.com/app#frag",
        "a#b#c#d",
        f"{SECRET}#not a url",
        f"{SECRET}#/relative/path",
        f"{SECRET}#",
        f"{SECRET}#https://",
    ],
)
def test_malformed_bodies_raise_parse_error(body):
    with pytest.raises(ParseError) as exc_info:
        parse_directive(body)

    assert exc_info.value.reason_code == ReasonCode.MALFORMED_RESPONSE


def test_mismatched_token_parses_but_is_not_valid():
    directive = parse_directive("WRONGTOKEN#https://example.com/app")

    assert directive.granted_token == "WRONGTOKEN"
    assert not directive.is_valid_for(SECRET)


def test_empty_token_is_structurally_accepted():
    directive = parse_directive("#https://example.com/app")

    assert directive.granted_token == ""
    assert not directive.is_valid_for(SECRET)


def test_is_absolute_url():
    assert is_absolute_url("https://example.com")
    assert is_absolute_url("http://10.0.0.1:8080/path?q=1")
    assert not is_absolute_url("")
    assert not is_absolute_url("example.com/app")
    assert not is_absolute_url("/app")
    assert not is_absolute_url("https://")
