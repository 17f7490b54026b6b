"""JSON output wrapper adding schema metadata to CLI payloads."""

from __future__ import annotations

import json
from typing import Any

from gitsig.utils.schema import build_schema_stamp


def json_response(
    schema_id: str,
    schema_version: int,
    **data: Any,
) -> str:
    """Create schema-wrapped JSON response for CLI output.

    Args:
        schema_id: Identifier for the output type (e.g., "signatures").
        schema_version: Integer version for backward compatibility.
        **data: Payload data to include in the response.

    Returns:
        JSON string with schema metadata and payload.

    Example:
        >>> json_response("signatures", 1, signatures={})
        {
          "schema_id": "signatures",
          "schema_version": 1,
          "producer": "gitsig-0.1.0",
          "produced_at": "2026-10-18T10:30:00+00:00",
          "signatures": {}
        }
    """
    stamp = build_schema_stamp(schema_id=schema_id, schema_version=schema_version)
    wrapped = stamp.apply(data)
    ordered = {
        "schema_id": wrapped.pop("schema_id"),
        "schema_version": wrapped.pop("schema_version"),
        "producer": wrapped.pop("producer"),
        "produced_at": wrapped.pop("produced_at"),
        **wrapped,
    }
    return json.dumps(ordered, indent=2, default=str)
