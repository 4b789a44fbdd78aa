"""
Topology Validation Engine

Validates a built pipeline graph before it is emitted:
- Successor references that name no node
- Missing or ambiguous entry node
- Cycles in the successor chain
- Node settings that do not match the catalog schema
- Listener/connector pairs whose ports differ
- Duplicate node names
"""

import logging
from typing import Dict, List, Any, Optional
from dataclasses import dataclass, asdict

from .build import Graph
from .catalog import TUN_DEVICE, TCP_LISTENER, TCP_CONNECTOR, check_settings

logger = logging.getLogger(__name__)

UNRESOLVED_SUCCESSOR = "UnresolvedSuccessor"
MISSING_OR_AMBIGUOUS_ENTRY = "MissingOrAmbiguousEntry"
CYCLE_DETECTED = "CycleDetected"
INVALID_SETTINGS = "InvalidSettings"
PORT_MISMATCH = "PortMismatch"
DUPLICATE_NODE_NAME = "DuplicateNodeName"

VIOLATION_KINDS = (
    UNRESOLVED_SUCCESSOR,
    MISSING_OR_AMBIGUOUS_ENTRY,
    CYCLE_DETECTED,
    INVALID_SETTINGS,
    PORT_MISMATCH,
    DUPLICATE_NODE_NAME,
)


@dataclass
class Violation:
    """Represents a structural or semantic problem found in a graph."""
    kind: str
    node: str
    message: str
    details: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        if result["details"] is None:
            del result["details"]
        return result


class TopologyValidator:
    """
    Validates a pipeline graph.

    Validation checks:
    1. Unresolved successors - "next" names a node that does not exist
    2. Entry node - exactly one node is nobody's successor, and it is the tun device
    3. Cycles - following "next" never revisits a node
    4. Settings - every node matches its kind's schema
    5. Port pairs - each listener feeds a connector on the same port
    6. Names - no two nodes share a name

    The graph is never modified.
    """

    def validate(self, graph: Graph) -> List[Violation]:
        """
        Validate a graph.

        Args:
            graph: Graph produced by the topology builder

        Returns:
            List of violations found (empty when the graph is valid)
        """
        violations: List[Violation] = []

        violations.extend(self._check_duplicate_names(graph))
        violations.extend(self._check_successors(graph))
        violations.extend(self._check_entry(graph))
        violations.extend(self._check_cycles(graph))
        violations.extend(self._check_settings(graph))
        violations.extend(self._check_port_pairs(graph))

        kind_order = {kind: i for i, kind in enumerate(VIOLATION_KINDS)}
        violations.sort(key=lambda v: (kind_order.get(v.kind, len(kind_order)), v.node))

        if violations:
            logger.warning(
                f"Validation of {graph.name!r} failed: {len(violations)} violations "
                f"({', '.join(sorted({v.kind for v in violations}))})"
            )
        else:
            logger.info(f"Validation of {graph.name!r} passed ({len(graph.nodes)} nodes)")

        return violations

    def _check_duplicate_names(self, graph: Graph) -> List[Violation]:
        violations = []
        seen = set()
        reported = set()

        for node in graph.nodes:
            if node.name in seen and node.name not in reported:
                count = sum(1 for n in graph.nodes if n.name == node.name)
                violations.append(Violation(
                    kind=DUPLICATE_NODE_NAME,
                    node=node.name,
                    message=f"Node name used {count} times",
                    details={"count": count},
                ))
                reported.add(node.name)
            seen.add(node.name)

        return violations

    def _check_successors(self, graph: Graph) -> List[Violation]:
        """Check that every successor reference resolves."""
        violations = []
        names = {node.name for node in graph.nodes}

        for node in graph.nodes:
            if node.next is None:
                continue
            if not isinstance(node.next, str):
                violations.append(Violation(
                    kind=UNRESOLVED_SUCCESSOR,
                    node=node.name,
                    message=f"Successor must be a node name, got {type(node.next).__name__}",
                    details={"next": node.next},
                ))
            elif node.next not in names:
                violations.append(Violation(
                    kind=UNRESOLVED_SUCCESSOR,
                    node=node.name,
                    message=f"Successor {node.next!r} does not exist",
                    details={"next": node.next},
                ))

        return violations

    def _check_entry(self, graph: Graph) -> List[Violation]:
        """Check for exactly one entry node, which must be the tun device."""
        entries = graph.entry_nodes()

        if len(entries) == 1:
            entry = entries[0]
            if entry.kind == TUN_DEVICE:
                return []
            return [Violation(
                kind=MISSING_OR_AMBIGUOUS_ENTRY,
                node=entry.name,
                message=f"Entry node must be a {TUN_DEVICE}, got {entry.kind}",
                details={"type": entry.kind},
            )]

        if not entries:
            message = "No entry node: every node is referenced as a successor"
        else:
            message = f"Ambiguous entry: {len(entries)} nodes are not referenced as a successor"

        return [Violation(
            kind=MISSING_OR_AMBIGUOUS_ENTRY,
            node="",
            message=message,
            details={"entries": [n.name for n in entries]},
        )]

    def _check_cycles(self, graph: Graph) -> List[Violation]:
        """Check that no successor chain loops back on itself."""
        violations = []
        by_name: Dict[str, Any] = {}
        for node in graph.nodes:
            by_name.setdefault(node.name, node)

        # 1 = on the current walk, 2 = finished
        state: Dict[str, int] = {}

        for start in by_name:
            path = []
            current = start
            while isinstance(current, str) and current in by_name and current not in state:
                state[current] = 1
                path.append(current)
                current = by_name[current].next

            if isinstance(current, str) and state.get(current) == 1:
                cycle = path[path.index(current):]
                violations.append(Violation(
                    kind=CYCLE_DETECTED,
                    node=current,
                    message=f"Successor chain loops: {' -> '.join(cycle + [current])}",
                    details={"cycle": cycle},
                ))

            for name in path:
                state[name] = 2

        return violations

    def _check_settings(self, graph: Graph) -> List[Violation]:
        """Check every node's settings against the catalog."""
        violations = []

        for node in graph.nodes:
            for problem in check_settings(node.kind, node.settings):
                violations.append(Violation(
                    kind=INVALID_SETTINGS,
                    node=node.name,
                    message=f"{node.kind}: {problem}",
                    details={"type": node.kind},
                ))

        return violations

    def _check_port_pairs(self, graph: Graph) -> List[Violation]:
        """Check that each listener forwards to a connector on the same port."""
        violations = []

        for node in graph.nodes:
            if node.kind != TCP_LISTENER:
                continue

            successor = graph.get(node.next) if node.next is not None else None
            if successor is None or successor.kind != TCP_CONNECTOR:
                violations.append(Violation(
                    kind=PORT_MISMATCH,
                    node=node.name,
                    message=f"{TCP_LISTENER} is not followed by a {TCP_CONNECTOR}",
                    details={"next": node.next},
                ))
                continue

            listen_port = node.settings.get("port")
            forward_port = successor.settings.get("port")
            if listen_port != forward_port:
                violations.append(Violation(
                    kind=PORT_MISMATCH,
                    node=node.name,
                    message=(
                        f"Listens on port {listen_port} but {successor.name} "
                        f"forwards to port {forward_port}"
                    ),
                    details={
                        "listen_port": listen_port,
                        "forward_port": forward_port,
                        "connector": successor.name,
                    },
                ))

        return violations


def validate(graph: Graph) -> List[Violation]:
    """Validate a graph with a default TopologyValidator."""
    return TopologyValidator().validate(graph)
