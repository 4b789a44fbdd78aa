"""Tests for the role coordinator."""

import json

import pytest

from coordinator import GenerationError, generate, is_port_token, parse_ports
from engine.build import EndpointPair, InvalidInput
from engine.validate import TopologyValidator, Violation


class RejectingValidator(TopologyValidator):
    def validate(self, graph):
        return [
            Violation(kind="InvalidSettings", node="manip", message="first"),
            Violation(kind="PortMismatch", node="input1", message="second"),
        ]


def test_generate_initiator(endpoints, tmp_path):
    path = tmp_path / "config.json"
    result = generate("initiator", endpoints, ports=[443, 8443], output=str(path))

    assert result.path == str(path)
    nodes = {n["name"]: n for n in result.document["nodes"]}
    assert nodes["ipovsrc"]["settings"]["ipv4"] == "1.2.3.4"
    assert nodes["ipovdest"]["settings"]["ipv4"] == "5.6.7.8"
    assert nodes["input1"]["settings"]["port"] == 443
    assert nodes["output1"]["settings"]["address"] == "10.10.0.2"
    assert nodes["output1"]["settings"]["port"] == 443

    with open(path, encoding="utf-8") as f:
        assert json.load(f) == result.document


def test_generate_responder(endpoints):
    result = generate("responder", endpoints)

    assert result.path is None
    assert result.document["name"] == "responder"
    assert len(result.document["nodes"]) == 7
    nodes = {n["name"]: n for n in result.document["nodes"]}
    assert nodes["ipovsrc"]["settings"]["ipv4"] == "5.6.7.8"
    assert nodes["rd"]["settings"]["capture-ip"] == "1.2.3.4"


def test_invalid_input_writes_nothing(tmp_path):
    path = tmp_path / "config.json"
    endpoints = EndpointPair(initiator_ip="999.1.1.1", responder_ip="5.6.7.8")

    with pytest.raises(InvalidInput):
        generate("initiator", endpoints, ports=[443], output=str(path))
    assert not path.exists()


def test_bad_role_reported_with_other_problems():
    endpoints = EndpointPair(initiator_ip="999.1.1.1", responder_ip="5.6.7.8")
    with pytest.raises(InvalidInput) as excinfo:
        generate("kharej", endpoints, ports=[0])
    assert len(excinfo.value.problems) == 3


def test_violations_abort_with_all_reported(endpoints, tmp_path):
    path = tmp_path / "config.json"

    with pytest.raises(GenerationError) as excinfo:
        generate("initiator", endpoints, ports=[443], output=str(path), validator=RejectingValidator())

    assert [v.message for v in excinfo.value.violations] == ["first", "second"]
    assert not path.exists()


def test_parse_ports_stops_at_sentinel():
    assert parse_ports(["443", " 8443 ", "done", "80"]) == [443, 8443]
    assert parse_ports([22, "80"]) == [22, 80]
    assert parse_ports([]) == []


def test_parse_ports_collects_bad_tokens():
    with pytest.raises(InvalidInput) as excinfo:
        parse_ports(["443", "http", "-1", "done"])
    assert excinfo.value.problems == [
        "invalid port number: 'http'",
        "invalid port number: '-1'",
    ]


@pytest.mark.parametrize("token,expected", [
    ("443", True),
    ("0", True),
    ("²", False),
    ("٤٤٣", False),
    ("+443", False),
    ("", False),
])
def test_is_port_token(token, expected):
    assert is_port_token(token) is expected


def test_parse_ports_rejects_non_ascii_digits():
    with pytest.raises(InvalidInput) as excinfo:
        parse_ports(["443", "²", "done"])
    assert excinfo.value.problems == ["invalid port number: '²'"]


def test_generation_error_keeps_graph(endpoints):
    with pytest.raises(GenerationError) as excinfo:
        generate("responder", endpoints, validator=RejectingValidator())
    assert excinfo.value.graph.name == "responder"
