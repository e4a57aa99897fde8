"""Tests for resource-request marker parsing."""

from __future__ import annotations

from mcp_web_client.markers import RESOURCE_USE_MARKER, find_resource_request

KNOWN = ["orderfaq://all", "docs://shipping"]


def test_both_markers_with_known_uri() -> None:
    text = 'I can help.<resource_use="true"/><resource uri="orderfaq://all"/>'
    assert find_resource_request(text, KNOWN) == "orderfaq://all"


def test_uri_marker_alone_is_not_enough() -> None:
    assert find_resource_request('<resource uri="orderfaq://all"/>', KNOWN) is None


def test_use_marker_alone_is_not_enough() -> None:
    assert find_resource_request(RESOURCE_USE_MARKER, KNOWN) is None


def test_unknown_uri_does_not_resolve() -> None:
    text = '<resource_use="true"/><resource uri="orderfaq://returns"/>'
    assert find_resource_request(text, KNOWN) is None


def test_first_known_uri_wins_when_several_are_marked() -> None:
    text = (
        '<resource_use="true"/><resource uri="orderfaq://nope"/>'
        '<resource uri="docs://shipping"/><resource uri="orderfaq://all"/>'
    )
    assert find_resource_request(text, KNOWN) == "docs://shipping"


def test_markers_are_case_sensitive() -> None:
    assert find_resource_request('<RESOURCE_USE="true"/><resource uri="orderfaq://all"/>', KNOWN) is None
    assert find_resource_request('<resource_use="True"/><resource uri="orderfaq://all"/>', KNOWN) is None
    assert find_resource_request('<resource_use="true"/><Resource uri="orderfaq://all"/>', KNOWN) is None


def test_markers_may_appear_on_separate_lines() -> None:
    text = 'Let me check.\n<resource_use="true"/>\n<resource uri="orderfaq://all"/>'
    assert find_resource_request(text, KNOWN) == "orderfaq://all"


def test_empty_text_and_empty_catalog() -> None:
    assert find_resource_request("", KNOWN) is None
    assert find_resource_request('<resource_use="true"/><resource uri="orderfaq://all"/>', []) is None
