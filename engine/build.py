"""
Topology Builder

Builds the tunnel pipeline graph for one endpoint by:
1. Laying out the backbone chain (tun device, address overrides,
   protocol swap, raw socket) from the local/remote perspective
2. Expanding requested ports into listener/connector pairs (initiator only)
3. Linking every node into a single successor chain
"""

import ipaddress
import logging
from typing import Dict, Iterable, List, Optional, Tuple, Any
from dataclasses import dataclass, field

from .catalog import (
    TUN_DEVICE,
    IP_OVERRIDER,
    IP_MANIPULATOR,
    RAW_SOCKET,
    TCP_LISTENER,
    TCP_CONNECTOR,
    is_ipv4,
    is_ipv4_cidr,
    is_port,
)

logger = logging.getLogger(__name__)

INITIATOR = "initiator"
RESPONDER = "responder"
ROLES = (INITIATOR, RESPONDER)

LISTEN_ADDRESS = "0.0.0.0"

# Canonical backbone node names, in chain order
TUN_NAME = "my tun"
UP_SOURCE_NAME = "ipovsrc"
UP_DEST_NAME = "ipovdest"
MANIPULATOR_NAME = "manip"
DOWN_SOURCE_NAME = "ipovsrc2"
DOWN_DEST_NAME = "ipovdest2"
RAW_SOCKET_NAME = "rd"

BACKBONE_NAMES = (
    TUN_NAME,
    UP_SOURCE_NAME,
    UP_DEST_NAME,
    MANIPULATOR_NAME,
    DOWN_SOURCE_NAME,
    DOWN_DEST_NAME,
    RAW_SOCKET_NAME,
)


class InvalidInput(Exception):
    """Exception raised when build inputs are rejected."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


@dataclass
class Node:
    """A named pipeline stage."""
    name: str
    kind: str
    settings: Dict[str, Any] = field(default_factory=dict)
    next: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "name": self.name,
            "type": self.kind,
            "settings": dict(self.settings),
        }
        if self.next is not None:
            result["next"] = self.next
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            name=data["name"],
            kind=data["type"],
            settings=dict(data.get("settings", {})),
            next=data.get("next"),
        )


@dataclass
class Graph:
    """Ordered pipeline description produced for one role."""
    name: str
    nodes: List[Node] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "nodes": [node.to_dict() for node in self.nodes],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Graph":
        """Rebuild a graph from an emitted document."""
        return cls(
            name=data["name"],
            nodes=[Node.from_dict(n) for n in data.get("nodes", [])],
        )

    def get(self, name: str) -> Optional[Node]:
        """Get a node by name, if present."""
        for node in self.nodes:
            if node.name == name:
                return node
        return None

    def entry_nodes(self) -> List[Node]:
        """Nodes that no other node names as its successor."""
        referenced = {node.next for node in self.nodes if isinstance(node.next, str)}
        return [node for node in self.nodes if node.name not in referenced]

    def port_nodes(self) -> List[Node]:
        return [n for n in self.nodes if n.kind in (TCP_LISTENER, TCP_CONNECTOR)]


@dataclass(frozen=True)
class PortForward:
    """A TCP port exposed on the initiator and forwarded across the tunnel."""
    listen_port: int
    forward_port: int

    @classmethod
    def same(cls, port: int) -> "PortForward":
        return cls(listen_port=port, forward_port=port)


@dataclass(frozen=True)
class EndpointPair:
    """Public IPv4 addresses of both tunnel endpoints."""
    initiator_ip: str
    responder_ip: str

    def perspective(self, role: str) -> Tuple[str, str]:
        """
        Get (local, remote) addresses as seen from one role.

        Raises:
            InvalidInput: If role is not recognized
        """
        if role == INITIATOR:
            return self.initiator_ip, self.responder_ip
        if role == RESPONDER:
            return self.responder_ip, self.initiator_ip
        raise InvalidInput([_role_problem(role)])


@dataclass(frozen=True)
class TunnelParams:
    """Private-side tunnel constants, identical on both endpoints."""
    device_name: str = "wtun0"
    device_ip: str = "10.10.0.1/24"
    peer_ip: str = "10.10.0.2"
    protoswap: int = 136

    @property
    def self_ip(self) -> str:
        """Private address of the local tun device, without prefix."""
        return str(ipaddress.IPv4Interface(self.device_ip).ip)


def _role_problem(role: Any) -> str:
    return f"role must be one of: {', '.join(ROLES)} (got {role!r})"


class TopologyBuilder:
    """
    Builds the pipeline graph for one endpoint.

    Both roles share the same backbone shape; only the public addresses
    are swapped. The initiator additionally exposes each requested port
    through a listener/connector pair targeting the private peer.
    """

    def __init__(self, params: Optional[TunnelParams] = None):
        self.params = params or TunnelParams()

    def build(
        self,
        role: str,
        local_ip: str,
        remote_ip: str,
        ports: Iterable[int] = ()
    ) -> Graph:
        """
        Build the graph for a role.

        Args:
            role: "initiator" or "responder"
            local_ip: Public IPv4 address of this endpoint
            remote_ip: Public IPv4 address of the other endpoint
            ports: TCP ports to forward (initiator only)

        Returns:
            Graph whose nodes form one successor chain

        Raises:
            InvalidInput: With every problem found in the inputs
        """
        ports = list(ports)
        problems = self._check_inputs(role, local_ip, remote_ip, ports)
        if problems:
            raise InvalidInput(problems)

        nodes = self._backbone(local_ip, remote_ip)

        if role == INITIATOR:
            forwards = [PortForward.same(p) for p in ports]
            nodes.extend(self._port_chain(forwards))
        elif ports:
            logger.warning(
                f"Ignoring {len(ports)} port(s) for {RESPONDER}: "
                f"ports are only forwarded on the {INITIATOR}"
            )

        # Link nodes in insertion order
        for node, successor in zip(nodes, nodes[1:]):
            node.next = successor.name

        graph = Graph(name=role, nodes=nodes)

        logger.info(
            f"Built {role} topology: {len(nodes)} nodes "
            f"({len(graph.port_nodes()) // 2} forwarded ports)"
        )
        for node in nodes:
            logger.debug(f"  {node.name} [{node.kind}] -> {node.next}")

        return graph

    def _check_inputs(
        self,
        role: Any,
        local_ip: Any,
        remote_ip: Any,
        ports: List[Any]
    ) -> List[str]:
        """Collect every input problem instead of stopping at the first."""
        problems = []

        if role not in ROLES:
            problems.append(_role_problem(role))

        for label, ip in (("local", local_ip), ("remote", remote_ip)):
            if not is_ipv4(ip):
                problems.append(f"{label} IP is not a valid IPv4 address: {ip!r}")

        seen = set()
        for port in ports:
            if not is_port(port):
                problems.append(f"port must be an integer in 1-65535: {port!r}")
                continue
            if port in seen:
                problems.append(f"duplicate port: {port}")
            seen.add(port)

        if not is_ipv4_cidr(self.params.device_ip):
            problems.append(f"tun device IP is not an IPv4 CIDR address: {self.params.device_ip!r}")
        if not is_ipv4(self.params.peer_ip):
            problems.append(f"peer IP is not a valid IPv4 address: {self.params.peer_ip!r}")

        return problems

    def _backbone(self, local_ip: str, remote_ip: str) -> List[Node]:
        """The fixed chain shared by both roles."""
        p = self.params
        return [
            Node(TUN_NAME, TUN_DEVICE, {
                "device-name": p.device_name,
                "device-ip": p.device_ip,
            }),
            Node(UP_SOURCE_NAME, IP_OVERRIDER, {
                "direction": "up",
                "mode": "source-ip",
                "ipv4": local_ip,
            }),
            Node(UP_DEST_NAME, IP_OVERRIDER, {
                "direction": "up",
                "mode": "dest-ip",
                "ipv4": remote_ip,
            }),
            Node(MANIPULATOR_NAME, IP_MANIPULATOR, {
                "protoswap": p.protoswap,
            }),
            Node(DOWN_SOURCE_NAME, IP_OVERRIDER, {
                "direction": "down",
                "mode": "source-ip",
                "ipv4": p.peer_ip,
            }),
            Node(DOWN_DEST_NAME, IP_OVERRIDER, {
                "direction": "down",
                "mode": "dest-ip",
                "ipv4": p.self_ip,
            }),
            Node(RAW_SOCKET_NAME, RAW_SOCKET, {
                "capture-filter-mode": "source-ip",
                "capture-ip": remote_ip,
            }),
        ]

    def _port_chain(self, forwards: List[PortForward]) -> List[Node]:
        """Listener/connector pairs named input{i}/output{i}, 1-based."""
        nodes = []
        for i, forward in enumerate(forwards, start=1):
            nodes.append(Node(f"input{i}", TCP_LISTENER, {
                "address": LISTEN_ADDRESS,
                "port": forward.listen_port,
                "nodelay": True,
            }))
            nodes.append(Node(f"output{i}", TCP_CONNECTOR, {
                "nodelay": True,
                "address": self.params.peer_ip,
                "port": forward.forward_port,
            }))
        return nodes


def build(
    role: str,
    local_ip: str,
    remote_ip: str,
    ports: Iterable[int] = (),
    params: Optional[TunnelParams] = None
) -> Graph:
    """Build a graph with a one-off TopologyBuilder."""
    return TopologyBuilder(params).build(role, local_ip, remote_ip, ports)
