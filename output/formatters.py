"""
Output Formatters

Serializes validated tunnel graphs into the engine's JSON configuration
document, and renders graphs and validation results as text.
"""

import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional, TextIO
from pathlib import Path

from engine.build import Graph
from engine.validate import Violation

logger = logging.getLogger(__name__)


class WriteFailure(Exception):
    """Exception raised when an output file cannot be written."""
    pass


def to_document(graph: Graph) -> Dict[str, Any]:
    """
    Build the engine configuration document for a graph.

    Nodes keep their insertion order: the engine reads them as an
    ordered list, not by following "next" links.

    Args:
        graph: Validated graph

    Returns:
        Dictionary with "name" and "nodes"
    """
    return graph.to_dict()


def dumps(graph: Graph, indent: int = 4) -> str:
    """Serialize a graph's configuration document to a JSON string."""
    return json.dumps(to_document(graph), indent=indent, ensure_ascii=False) + "\n"


def to_json(graph: Graph, path: str, indent: int = 4) -> None:
    """
    Write a graph's configuration document to a JSON file.

    The document is written to a temporary file next to the target and
    moved into place, so the target holds either the previous version or
    the complete new one.

    Args:
        graph: Validated graph to serialize
        path: Output file path (overwritten if it exists)
        indent: JSON indentation level

    Raises:
        WriteFailure: If the directory or file cannot be written
    """
    written = _write_atomic(dumps(graph, indent=indent), path, "configuration")
    logger.info(f"Configuration written to {written}")


def to_report(
    graph: Graph,
    path: str,
    violations: Optional[List[Violation]] = None
) -> None:
    """
    Write the text report of a graph to a file.

    Raises:
        WriteFailure: If the directory or file cannot be written
    """
    written = _write_atomic(to_text(graph, violations) + "\n", path, "report")
    logger.info(f"Report written to {written}")


def _write_atomic(text: str, path: str, what: str) -> Path:
    """Replace path with text via a temporary file in the same directory."""
    path_obj = Path(os.path.expanduser(path))

    tmp_name = None
    try:
        path_obj.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{path_obj.name}.", suffix=".tmp", dir=str(path_obj.parent)
        )
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_name, path_obj)
        tmp_name = None
    except OSError as e:
        raise WriteFailure(f"Failed to write {what} to {path_obj}: {e}") from e
    finally:
        if tmp_name is not None and os.path.exists(tmp_name):
            os.unlink(tmp_name)

    return path_obj


def to_text(
    graph: Graph,
    violations: Optional[List[Violation]] = None,
    file: Optional[TextIO] = None
) -> str:
    """
    Format a graph as a human-readable pipeline report.

    Args:
        graph: Graph to format
        violations: Optional list of validation violations
        file: Optional file to write to

    Returns:
        Formatted text string
    """
    lines = []

    # Header
    lines.append("=" * 60)
    lines.append(f"TUNNEL PIPELINE: {graph.name}")
    lines.append("=" * 60)
    lines.append("")

    port_nodes = graph.port_nodes()
    lines.append("SUMMARY")
    lines.append("-" * 40)
    lines.append(f"  Nodes:              {len(graph.nodes)}")
    lines.append(f"  Backbone nodes:     {len(graph.nodes) - len(port_nodes)}")
    lines.append(f"  Forwarded ports:    {len(port_nodes) // 2}")
    lines.append("")

    lines.append("NODES")
    lines.append("-" * 40)
    if graph.nodes:
        for node in graph.nodes:
            target = f" -> {node.next}" if node.next is not None else ""
            lines.append(f"  {node.name} [{node.kind}]{target}")
            for key, value in node.settings.items():
                lines.append(f"      {key}: {_format_value(value)}")
    else:
        lines.append("  (no nodes)")
    lines.append("")

    if violations:
        lines.append("VALIDATION ISSUES")
        lines.append("-" * 40)
        for violation in violations:
            where = f" {violation.node}" if violation.node else ""
            lines.append(f"  [{violation.kind}]{where}")
            lines.append(f"    {violation.message}")
        lines.append("")

    lines.append("=" * 60)

    text = "\n".join(lines)

    if file is not None:
        file.write(text)

    return text


def format_issues(violations: List[Violation]) -> str:
    """
    Format validation violations as a summary text.

    Args:
        violations: List of validation violations

    Returns:
        Formatted summary string
    """
    if not violations:
        return "No validation issues found."

    lines = []
    kinds = sorted({v.kind for v in violations})
    lines.append(f"Found {len(violations)} issues: {', '.join(kinds)}")
    lines.append("")

    for violation in violations:
        where = f" {violation.node}" if violation.node else ""
        lines.append(f"[{violation.kind}]{where} - {violation.message}")

    return "\n".join(lines)


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
