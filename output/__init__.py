"""
Output module - Tunnel configuration emitters

Contains formatters for:
- JSON (engine configuration document)
- Text (human-readable pipeline report and validation summary)
"""

from .formatters import WriteFailure, to_document, dumps, to_json, to_report, to_text, format_issues

__all__ = ['WriteFailure', 'to_document', 'dumps', 'to_json', 'to_report', 'to_text', 'format_issues']
