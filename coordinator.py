"""
Role Coordinator

Drives one configuration generation: resolves the local/remote view of
the endpoint pair for the selected role, builds the graph, validates it
and emits the engine document. Nothing is written unless the graph is
valid.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass

from engine.build import (
    EndpointPair,
    Graph,
    InvalidInput,
    TopologyBuilder,
    TunnelParams,
    ROLES,
)
from engine.validate import TopologyValidator, Violation
from output.formatters import to_document, to_json

logger = logging.getLogger(__name__)

PORT_SENTINEL = "done"

_PORT_TOKEN = re.compile(r"[0-9]+")


class GenerationError(Exception):
    """Exception raised when a built graph fails validation."""

    def __init__(self, violations: List[Violation], graph: Optional[Graph] = None):
        self.violations = list(violations)
        self.graph = graph
        super().__init__(
            f"Generated topology has {len(self.violations)} violation(s): "
            + "; ".join(v.message for v in self.violations)
        )


@dataclass
class GenerationResult:
    """Outcome of a successful generation run."""
    graph: Graph
    document: Dict[str, Any]
    path: Optional[str] = None


def is_port_token(token: str) -> bool:
    """Check that a token is made of ASCII digits only."""
    return _PORT_TOKEN.fullmatch(token) is not None


def parse_ports(tokens: Iterable[Any], sentinel: str = PORT_SENTINEL) -> List[int]:
    """
    Convert a stream of port tokens into integers.

    Reading stops at the sentinel token. Range and duplicate checks are
    left to the topology builder.

    Args:
        tokens: Port tokens (strings or integers)
        sentinel: Token that terminates the list

    Returns:
        List of port numbers in input order

    Raises:
        InvalidInput: With every non-numeric token found
    """
    ports: List[int] = []
    problems: List[str] = []

    for token in tokens:
        if isinstance(token, str):
            token = token.strip()
            if token == sentinel:
                break
            if is_port_token(token):
                ports.append(int(token))
                continue
        elif isinstance(token, int) and not isinstance(token, bool):
            ports.append(token)
            continue
        problems.append(f"invalid port number: {token!r}")

    if problems:
        raise InvalidInput(problems)

    return ports


def generate(
    role: str,
    endpoints: EndpointPair,
    ports: Iterable[int] = (),
    output: Optional[str] = None,
    params: Optional[TunnelParams] = None,
    validator: Optional[TopologyValidator] = None,
) -> GenerationResult:
    """
    Run build, validate and emit for one endpoint.

    Args:
        role: "initiator" or "responder"
        endpoints: Public addresses of both endpoints
        ports: Ports to forward (used by the initiator only)
        output: Optional path to write the configuration document to
        params: Private tunnel parameters (defaults when omitted)
        validator: Validator to use (default TopologyValidator)

    Returns:
        GenerationResult with the graph, its document and written path

    Raises:
        InvalidInput: If role, addresses or ports are rejected
        GenerationError: If the built graph fails validation
        WriteFailure: If the document cannot be written
    """
    if role in ROLES:
        local_ip, remote_ip = endpoints.perspective(role)
    else:
        # the builder reports the bad role along with any other input problems
        local_ip, remote_ip = endpoints.initiator_ip, endpoints.responder_ip
    logger.info(f"Generating {role} configuration: local {local_ip}, remote {remote_ip}")

    graph = TopologyBuilder(params).build(role, local_ip, remote_ip, ports)

    validator = validator or TopologyValidator()
    violations = validator.validate(graph)
    if violations:
        for violation in violations:
            logger.error(f"[{violation.kind}] {violation.node}: {violation.message}")
        raise GenerationError(violations, graph)

    document = to_document(graph)

    if output:
        to_json(graph, output)

    return GenerationResult(graph=graph, document=document, path=output)
