"""Input parsing utilities for CLI commands."""

import json
from pathlib import Path
from typing import Any


def parse_field_spec(spec: str) -> dict[str, Any]:
    """Parse a field specification string.

    Format: slug:type[:required][:default=value][:name=Label]

    Examples:
        "title:TEXT_SHORT:required" -> {"slug": "title", "name": "Title", "type": "TEXT_SHORT", "is_required": True}
        "year:NUMBER_INT:default=2000" -> {..., "default_value": "2000"}

    Raises:
        ValueError: If the spec format is invalid
    """
    parts = spec.split(":")
    if len(parts) < 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Invalid field spec: '{spec}'. Expected format: slug:type[:modifier]...")

    slug = parts[0].strip()
    field: dict[str, Any] = {
        "slug": slug,
        "name": slug.replace("_", " ").replace("-", " ").title(),
        "type": parts[1].strip().upper(),
        "is_required": False,
        "default_value": None,
    }

    for modifier in parts[2:]:
        if modifier == "required":
            field["is_required"] = True
        elif modifier.startswith("default="):
            field["default_value"] = modifier.split("=", 1)[1]
        elif modifier.startswith("name="):
            field["name"] = modifier.split("=", 1)[1]
        else:
            raise ValueError(
                f"Invalid modifier: '{modifier}'. Supported: required, default=value, name=Label"
            )

    return field


def read_json_file(path: str) -> dict[str, Any]:
    """Read a single JSON object from a file.

    Raises:
        FileNotFoundError: If the file doesn't exist
        json.JSONDecodeError: If the file contains invalid JSON
    """
    file_path = Path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {path}")

    with file_path.open("r") as f:
        return json.load(f)
