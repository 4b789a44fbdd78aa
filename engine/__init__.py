"""
Engine module - Tunnel topology construction and validation

Contains:
- catalog: Node kinds and their settings schemas
- build: Pipeline graph model and topology builder
- validate: Graph validation
"""

from .catalog import CATALOG, NODE_KINDS, check_settings
from .build import (
    TopologyBuilder,
    Graph,
    Node,
    PortForward,
    EndpointPair,
    TunnelParams,
    InvalidInput,
    INITIATOR,
    RESPONDER,
    ROLES,
)
from .validate import TopologyValidator, Violation

__all__ = [
    'CATALOG',
    'NODE_KINDS',
    'check_settings',
    'TopologyBuilder',
    'Graph',
    'Node',
    'PortForward',
    'EndpointPair',
    'TunnelParams',
    'InvalidInput',
    'INITIATOR',
    'RESPONDER',
    'ROLES',
    'TopologyValidator',
    'Violation',
]
