"""Diagnostics for YAML schema declaration files.

``check_schema_file`` lets callers vet a schema file before any contract
loads it. The function never raises; it always returns a ``SchemaReport``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, get_args

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError

from contract_validation.schema import Schema, SchemaKey, SchemaType


class SchemaIssue(BaseModel):
    """A single problem found in a schema declaration."""

    model_config = ConfigDict(frozen=True)

    code: str
    field: str
    message: str


class SchemaReport(BaseModel):
    """Result of running diagnostics on a schema declaration file."""

    model_config = ConfigDict(frozen=True)

    path: str
    is_valid: bool
    issues: list[SchemaIssue]
    key_paths: list[str]


_VALID_TYPES = frozenset(get_args(SchemaType))
_KNOWN_FIELDS = frozenset(SchemaKey.model_fields)
_NESTING_TYPES = frozenset({"hash", "array"})


def check_schema_file(path: Path | str) -> SchemaReport:
    """Check a YAML schema declaration.

    Runs these checks in order:
    1. YAML parses without error
    2. The root is a mapping with a ``keys`` list (a bare list is accepted)
    3. Every entry is a mapping with a non-empty ``name``
    4. No entry carries unknown fields
    5. ``type`` and ``member`` name known types
    6. Nested ``keys`` only appear under ``hash`` or ``array`` keys
    7. Sibling key names are unique
    8. The whole declaration builds a ``Schema``

    Args:
        path: Path to the YAML file (``Path`` or ``str``).

    Returns:
        A ``SchemaReport``; ``key_paths`` is filled only for valid files.
    """
    path_str = str(path)
    issues: list[SchemaIssue] = []

    try:
        raw: Any = yaml.safe_load(Path(path).read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        issues.append(SchemaIssue(code="YAML_PARSE_ERROR", field="<root>", message=f"YAML parse failed: {exc}"))
        return _build_report(path_str, issues, [])

    if isinstance(raw, list):
        raw = {"keys": raw}
    if not isinstance(raw, dict):
        issues.append(SchemaIssue(code="INVALID_ROOT", field="<root>", message="YAML root must be a mapping or a list"))
        return _build_report(path_str, issues, [])

    keys = raw.get("keys")
    if not isinstance(keys, list) or not keys:
        issues.append(SchemaIssue(code="MISSING_KEYS", field="keys", message="Schema must declare a non-empty 'keys' list"))
        return _build_report(path_str, issues, [])

    _check_entries(keys, "keys", issues)
    if issues:
        return _build_report(path_str, issues, [])

    try:
        schema = Schema.model_validate(raw)
    except ValidationError as exc:
        for error in exc.errors():
            issues.append(SchemaIssue(
                code="SCHEMA_INVALID",
                field=".".join(str(part) for part in error["loc"]) or "<root>",
                message=error["msg"],
            ))
        return _build_report(path_str, issues, [])

    return _build_report(path_str, issues, sorted(str(p) for p in schema.key_paths()))


def _check_entries(entries: list[Any], field: str, issues: list[SchemaIssue]) -> None:
    seen: set[str] = set()
    for i, entry in enumerate(entries):
        where = f"{field}[{i}]"
        if not isinstance(entry, dict):
            issues.append(SchemaIssue(code="INVALID_ENTRY", field=where, message=f"{where} must be a mapping"))
            continue

        name = entry.get("name")
        if not isinstance(name, str) or not name:
            issues.append(SchemaIssue(code="MISSING_KEY_NAME", field=where, message=f"{where} must have a non-empty 'name'"))
        elif name in seen:
            issues.append(SchemaIssue(code="DUPLICATE_KEY", field=where, message=f"Duplicate key '{name}' in {field}"))
        else:
            seen.add(name)

        for unknown in sorted(set(entry) - _KNOWN_FIELDS, key=str):
            issues.append(SchemaIssue(
                code="UNKNOWN_FIELD",
                field=f"{where}.{unknown}",
                message=f"{where} has unknown field '{unknown}'",
            ))

        key_type = entry.get("type", "any")
        for attr in ("type", "member"):
            declared = entry.get(attr, "any")
            if not isinstance(declared, str) or declared not in _VALID_TYPES:
                issues.append(SchemaIssue(
                    code="UNKNOWN_TYPE",
                    field=f"{where}.{attr}",
                    message=(
                        f"{where}.{attr} '{declared}' is not valid; "
                        f"must be one of: {', '.join(sorted(_VALID_TYPES))}"
                    ),
                ))

        nested = entry.get("keys")
        if nested is not None:
            if not isinstance(key_type, str) or key_type not in _NESTING_TYPES:
                issues.append(SchemaIssue(
                    code="INVALID_NESTING",
                    field=f"{where}.keys",
                    message=f"{where} declares nested keys but its type is '{key_type}'",
                ))
            if isinstance(nested, list):
                _check_entries(nested, f"{where}.keys", issues)
            else:
                issues.append(SchemaIssue(code="INVALID_ENTRY", field=f"{where}.keys", message=f"{where}.keys must be a list"))


def _build_report(path_str: str, issues: list[SchemaIssue], key_paths: list[str]) -> SchemaReport:
    return SchemaReport(
        path=path_str,
        is_valid=len(issues) == 0,
        issues=issues,
        key_paths=key_paths,
    )
