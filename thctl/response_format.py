#!/usr/bin/env python3
"""
Standard Response Format for THCTL
Simple, consistent data/meta structure rendered as JSON, YAML or a text table
"""

import io
import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Dict, List, Any

import yaml
from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import __version__

OUTPUT_FORMATS = ("json", "yaml", "table")

# Wide enough that rows of sector records are not folded
TABLE_WIDTH = 200


def to_plain(value: Any) -> Any:
    """Convert dataclasses, enums and containers into JSON/YAML-safe builtins"""
    if is_dataclass(value) and not isinstance(value, type):
        return to_plain(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(key): to_plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [to_plain(item) for item in value]
    return value


def standard_response(
    data: List[Any],
    operation: str = "query",
    status: str = "success",
    execution_time_ms: int = 0,
    **meta_fields
) -> Dict[str, Any]:
    """
    Create standard response format used across the CLI

    Args:
        data: List of result objects (dataclasses or dicts)
        operation: Operation name (miner.info, sectors.list, etc.)
        status: success/error/partial
        execution_time_ms: Time taken for operation
        **meta_fields: Additional metadata fields

    Returns:
        Standardized response dictionary with data/meta structure
    """
    data_type = meta_fields.pop("data_type", "result")
    formatted_data = [{"type": data_type, "payload": to_plain(item)} for item in data]

    meta = {
        "status": status,
        "timestamp": datetime.now().isoformat(),
        "operation": operation,
        "execution_time_ms": execution_time_ms,
        "total_items": len(formatted_data),
        "version": __version__,
    }
    meta.update(to_plain(meta_fields))

    return {
        "data": formatted_data,
        "meta": meta
    }


def error_response(error_message: str, operation: str = "query", **meta_fields) -> Dict[str, Any]:
    """Create standard error response"""
    meta = {
        "status": "error",
        "timestamp": datetime.now().isoformat(),
        "operation": operation,
        "error": error_message,
        "total_items": 0,
        "version": __version__,
    }
    meta.update(to_plain(meta_fields))
    return {
        "data": [],
        "meta": meta
    }


def format_json(response: Dict[str, Any], pretty: bool = False) -> str:
    """Format response as JSON string"""
    if pretty:
        return json.dumps(response, indent=2, default=str)
    return json.dumps(response, separators=(',', ':'), default=str)


def format_yaml(response: Dict[str, Any]) -> str:
    return yaml.safe_dump(to_plain(response), sort_keys=False, default_flow_style=False)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    if isinstance(value, list):
        if all(not isinstance(item, (dict, list)) for item in value):
            return ", ".join(str(item) for item in value)
        return json.dumps(value, separators=(',', ':'), default=str)
    if isinstance(value, dict):
        return json.dumps(value, separators=(',', ':'), default=str)
    return str(value)


def _flatten(record: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    flat = {}
    for key, value in record.items():
        name = f"{prefix}{key}"
        if isinstance(value, dict) and value:
            flat.update(_flatten(value, f"{name}."))
        else:
            flat[name] = value
    return flat


def _print_table(table: Table) -> str:
    buffer = io.StringIO()
    console = Console(file=buffer, width=TABLE_WIDTH, color_system=None, highlight=False)
    console.print(table)
    return "\n".join(line.rstrip() for line in buffer.getvalue().splitlines()).strip("\n")


def _table(columns: List[str], rows: List[List[str]]) -> Table:
    table = Table(box=box.SIMPLE_HEAD, show_edge=False, pad_edge=False)
    for column in columns:
        table.add_column(column.upper(), overflow="fold")
    for row in rows:
        table.add_row(*[Text(cell) for cell in row])
    return table


def format_table(records: List[Any]) -> str:
    """
    Render records as text

    A single record becomes a two-column field/value table; several records
    become one row each with the first record's keys as columns.
    """
    records = [to_plain(record) for record in records]
    if not records:
        return "No results"

    if len(records) == 1 and isinstance(records[0], dict):
        flat = _flatten(records[0])
        return _print_table(_table(["field", "value"], [[key, _cell(value)] for key, value in flat.items()]))

    if not all(isinstance(record, dict) for record in records):
        return "\n".join(_cell(record) for record in records)

    columns = list(records[0].keys())
    rows = [[_cell(record.get(column)) for column in columns] for record in records]
    return _print_table(_table(columns, rows))


def render(response: Dict[str, Any], fmt: str = "json", pretty: bool = False) -> str:
    """Render a standard or error response in the requested output format"""
    if fmt == "json":
        return format_json(response, pretty)
    if fmt == "yaml":
        return format_yaml(response)
    if fmt == "table":
        meta = response.get("meta", {})
        if meta.get("status") == "error":
            return f"Error: {meta.get('error', 'unknown error')}"
        table = format_table([item.get("payload") for item in response.get("data", [])])
        warnings = meta.get("errors") or []
        if warnings:
            table += "\n\nUnavailable: " + "; ".join(str(warning) for warning in warnings)
        return table
    raise ValueError(f"unsupported output format: {fmt}")
