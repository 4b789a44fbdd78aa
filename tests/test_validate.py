"""Tests for graph validation."""

import copy
import itertools

import pytest

from engine.build import Graph, Node, build
from engine.validate import (
    CYCLE_DETECTED,
    DUPLICATE_NODE_NAME,
    INVALID_SETTINGS,
    MISSING_OR_AMBIGUOUS_ENTRY,
    PORT_MISMATCH,
    UNRESOLVED_SUCCESSOR,
    TopologyValidator,
    Violation,
    validate,
)


def _kinds(violations):
    return [v.kind for v in violations]


@pytest.mark.parametrize("role,ips,ports", [
    (role, ips, ports)
    for role, ips, ports in itertools.product(
        ["initiator", "responder"],
        [("1.2.3.4", "5.6.7.8"), ("203.0.113.10", "198.51.100.7"), ("10.0.0.1", "10.0.0.1")],
        [[], [443], [80, 443, 8080, 65535, 1]],
    )
])
def test_built_graphs_are_valid(role, ips, ports):
    graph = build(role, ips[0], ips[1], ports)
    assert TopologyValidator().validate(graph) == []


def test_validation_does_not_mutate(initiator_graph):
    before = copy.deepcopy(initiator_graph)
    validate(initiator_graph)
    assert initiator_graph == before


def test_unresolved_successor(responder_graph):
    responder_graph.get("manip").next = "missing"
    violations = validate(responder_graph)
    assert UNRESOLVED_SUCCESSOR in _kinds(violations)
    unresolved = [v for v in violations if v.kind == UNRESOLVED_SUCCESSOR][0]
    assert unresolved.node == "manip"
    assert unresolved.details == {"next": "missing"}


def test_ambiguous_entry_for_detached_port_pair(initiator_graph):
    # listener/connector pairs detached from the backbone form a second chain
    initiator_graph.get("rd").next = None
    violations = validate(initiator_graph)
    assert _kinds(violations) == [MISSING_OR_AMBIGUOUS_ENTRY]
    assert violations[0].details == {"entries": ["my tun", "input1"]}


def test_entry_must_be_tun_device():
    graph = Graph(name="initiator", nodes=[
        Node("rd", "RawSocket", {"capture-filter-mode": "source-ip", "capture-ip": "1.2.3.4"}, next="my tun"),
        Node("my tun", "TunDevice", {"device-name": "wtun0", "device-ip": "10.10.0.1/24"}),
    ])
    violations = validate(graph)
    assert _kinds(violations) == [MISSING_OR_AMBIGUOUS_ENTRY]
    assert violations[0].node == "rd"


def test_cycle_detected(responder_graph):
    responder_graph.get("rd").next = "ipovdest"
    violations = validate(responder_graph)
    assert _kinds(violations) == [CYCLE_DETECTED]
    assert violations[0].details["cycle"] == ["ipovdest", "manip", "ipovsrc2", "ipovdest2", "rd"]


def test_full_cycle_has_no_entry(responder_graph):
    responder_graph.get("rd").next = "my tun"
    kinds = _kinds(validate(responder_graph))
    assert MISSING_OR_AMBIGUOUS_ENTRY in kinds
    assert CYCLE_DETECTED in kinds
    assert kinds.count(CYCLE_DETECTED) == 1


def test_self_loop():
    graph = Graph(name="responder", nodes=[
        Node("my tun", "TunDevice", {"device-name": "wtun0", "device-ip": "10.10.0.1/24"}, next="manip"),
        Node("manip", "IpManipulator", {"protoswap": 136}, next="manip"),
    ])
    violations = validate(graph)
    assert _kinds(violations) == [CYCLE_DETECTED]
    assert violations[0].node == "manip"


def test_invalid_settings(initiator_graph):
    initiator_graph.get("ipovsrc").settings["ipv4"] = "999.1.1.1"
    initiator_graph.get("manip").settings.pop("protoswap")
    violations = validate(initiator_graph)
    assert _kinds(violations) == [INVALID_SETTINGS, INVALID_SETTINGS]
    assert {v.node for v in violations} == {"ipovsrc", "manip"}


def test_unknown_node_kind(responder_graph):
    responder_graph.get("manip").kind = "Obfuscator"
    violations = validate(responder_graph)
    assert _kinds(violations) == [INVALID_SETTINGS]
    assert "unknown node kind" in violations[0].message


def test_port_mismatch(initiator_graph):
    initiator_graph.get("output2").settings["port"] = 9443
    violations = validate(initiator_graph)
    assert _kinds(violations) == [PORT_MISMATCH]
    assert violations[0].node == "input2"
    assert violations[0].details["listen_port"] == 8443
    assert violations[0].details["forward_port"] == 9443


def test_listener_without_connector(initiator_graph):
    # input2 -> output2 becomes input2 -> (nothing); output2 dangles as a second entry
    initiator_graph.get("input2").next = None
    kinds = _kinds(validate(initiator_graph))
    assert PORT_MISMATCH in kinds
    assert MISSING_OR_AMBIGUOUS_ENTRY in kinds


def test_duplicate_node_name(initiator_graph):
    initiator_graph.get("output2").name = "output1"
    kinds = _kinds(validate(initiator_graph))
    assert DUPLICATE_NODE_NAME in kinds


def test_all_violations_reported_and_ordered():
    graph = Graph(name="initiator", nodes=[
        Node("my tun", "TunDevice", {"device-name": "wtun0"}, next="ghost"),
        Node("input1", "TcpListener", {"address": "0.0.0.0", "port": 443, "nodelay": True}, next="output1"),
        Node("output1", "TcpConnector", {"address": "10.10.0.2", "port": 80, "nodelay": True}),
    ])
    violations = validate(graph)
    assert _kinds(violations) == [
        UNRESOLVED_SUCCESSOR,
        MISSING_OR_AMBIGUOUS_ENTRY,
        INVALID_SETTINGS,
        PORT_MISMATCH,
    ]


def test_empty_graph_has_no_entry():
    assert _kinds(validate(Graph(name="initiator"))) == [MISSING_OR_AMBIGUOUS_ENTRY]


def test_violation_to_dict():
    assert Violation(kind=CYCLE_DETECTED, node="rd", message="loop").to_dict() == {
        "kind": CYCLE_DETECTED, "node": "rd", "message": "loop",
    }


def test_non_string_successor_is_unresolved():
    graph = Graph.from_dict({
        "name": "responder",
        "nodes": [
            {"name": "my tun", "type": "TunDevice",
             "settings": {"device-name": "wtun0", "device-ip": "10.10.0.1/24"}, "next": ["manip"]},
            {"name": "manip", "type": "IpManipulator", "settings": {"protoswap": 136}},
        ],
    })
    violations = validate(graph)
    assert _kinds(violations) == [UNRESOLVED_SUCCESSOR, MISSING_OR_AMBIGUOUS_ENTRY]
    assert violations[0].node == "my tun"
    assert "must be a node name" in violations[0].message
