"""Schema declarations, structural validation and YAML schema loading."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Callable, Literal

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from contract_validation.messages import ErrorTree, Message
from contract_validation.paths import KeyPath


class ContractError(RuntimeError):
    """Root of every error raised by contract-validation."""


class SchemaDefinitionError(ContractError):
    """Raised for malformed schema declarations."""


# ---------------------------------------------------------------------------
# Key declarations
# ---------------------------------------------------------------------------

SchemaType = Literal["any", "string", "integer", "float", "number", "bool", "hash", "array"]

_TYPE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "any": lambda value: True,
    "string": lambda value: isinstance(value, str),
    "integer": lambda value: isinstance(value, int) and not isinstance(value, bool),
    "float": lambda value: isinstance(value, float),
    "number": lambda value: isinstance(value, (int, float)) and not isinstance(value, bool),
    "bool": lambda value: isinstance(value, bool),
    "hash": lambda value: isinstance(value, Mapping),
    "array": lambda value: isinstance(value, (list, tuple)),
}

_TYPE_MESSAGES: dict[str, str] = {
    "string": "must be a string",
    "integer": "must be an integer",
    "float": "must be a float",
    "number": "must be a number",
    "bool": "must be boolean",
    "hash": "must be a hash",
    "array": "must be an array",
}


class SchemaKey(BaseModel):
    """Declaration of a single key, possibly with nested keys.

    ``keys`` describes the members of a ``hash`` or, for an ``array``, the
    keys of each element (which must then be hashes). ``member`` types the
    elements of a plain array.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = Field(..., min_length=1)
    required: bool = True
    type: SchemaType = "any"
    filled: bool = False
    nullable: bool = False
    keys: tuple[SchemaKey, ...] | None = None
    member: SchemaType = "any"

    @model_validator(mode="after")
    def _validate_nesting(self) -> SchemaKey:
        if self.keys is not None:
            if self.type not in ("hash", "array"):
                raise ValueError(
                    f"Key '{self.name}': nested keys require type 'hash' or 'array', got '{self.type}'"
                )
            _ensure_unique_names(self.keys, f"key '{self.name}'")
        if self.member != "any" and self.type != "array":
            raise ValueError(f"Key '{self.name}': member type is only valid for arrays")
        if self.member != "any" and self.keys is not None:
            raise ValueError(f"Key '{self.name}': use either member or keys, not both")
        return self


def _ensure_unique_names(keys: tuple[SchemaKey, ...], owner: str) -> None:
    seen: set[str] = set()
    for key in keys:
        if key.name in seen:
            raise ValueError(f"Duplicate key '{key.name}' in {owner}")
        seen.add(key.name)


class KeyBuilder:
    """Fluent helper behind ``required(name)`` and ``optional(name)``."""

    def __init__(self, name: str, required: bool) -> None:
        self._name = name
        self._required = required

    def filled(self, type: SchemaType = "any") -> SchemaKey:
        return self._build(type=type, filled=True)

    def value(self, type: SchemaType = "any") -> SchemaKey:
        return self._build(type=type)

    def maybe(self, type: SchemaType = "any") -> SchemaKey:
        return self._build(type=type, nullable=True)

    def hash(self, *keys: SchemaKey | Schema) -> SchemaKey:
        return self._build(type="hash", keys=_collect_keys(keys))

    def array(self, member: SchemaType | Schema | SchemaKey = "any", *more: SchemaKey) -> SchemaKey:
        if isinstance(member, str):
            if more:
                raise SchemaDefinitionError(f"Key '{self._name}': cannot mix a member type with keys")
            return self._build(type="array", member=member)
        return self._build(type="array", keys=_collect_keys((member, *more)))

    def _build(self, **fields: Any) -> SchemaKey:
        try:
            return SchemaKey(name=self._name, required=self._required, **fields)
        except ValidationError as exc:
            raise SchemaDefinitionError(str(exc)) from exc


def _collect_keys(items: tuple[SchemaKey | Schema, ...]) -> tuple[SchemaKey, ...]:
    keys: list[SchemaKey] = []
    for item in items:
        if isinstance(item, Schema):
            keys.extend(item.keys)
        else:
            keys.append(item)
    return tuple(keys)


def required(name: str) -> KeyBuilder:
    return KeyBuilder(name, required=True)


def optional(name: str) -> KeyBuilder:
    return KeyBuilder(name, required=False)


# ---------------------------------------------------------------------------
# Schema and its result
# ---------------------------------------------------------------------------

class SchemaResult(BaseModel):
    """Output of structural validation: declared values plus schema failures."""

    model_config = ConfigDict(frozen=True)

    values: dict[str, Any] = Field(default_factory=dict)
    errors: ErrorTree = Field(default_factory=ErrorTree)

    @property
    def success(self) -> bool:
        return self.errors.is_empty

    def error_at(self, path: Any) -> bool:
        return self.errors.error_at(path)


class Schema(BaseModel):
    """Reusable structural schema.

    Instances can be nested into other schemas through ``hash(schema)`` and
    ``array(schema)``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    keys: tuple[SchemaKey, ...] = Field(default_factory=tuple)
    strict: bool = False

    @model_validator(mode="after")
    def _validate_keys(self) -> Schema:
        _ensure_unique_names(self.keys, "schema")
        return self

    @classmethod
    def define(cls, *keys: SchemaKey | Schema, strict: bool = False) -> Schema:
        try:
            return cls(keys=_collect_keys(keys), strict=strict)
        except ValidationError as exc:
            raise SchemaDefinitionError(str(exc)) from exc

    def key_paths(self) -> frozenset[KeyPath]:
        """Every declarable path, intermediate hashes included, without indexes."""
        paths: set[KeyPath] = set()
        _collect_paths(self.keys, KeyPath.base(), paths)
        return frozenset(paths)

    def defines(self, path: Any) -> bool:
        """True when ``path`` names a declared location.

        Stepping into an array takes an explicit index: ``items.0.sku`` is
        defined, ``items.sku`` is not.
        """
        target = KeyPath.parse(path)
        if target.is_base:
            return False
        keys: tuple[SchemaKey, ...] | None = self.keys
        current: SchemaKey | None = None
        for segment in target.segments:
            if isinstance(segment, int):
                if current is None or current.type != "array":
                    return False
                keys = current.keys
                current = None
                continue
            if keys is None or (current is not None and current.type == "array"):
                return False
            current = next((key for key in keys if key.name == segment), None)
            if current is None:
                return False
            keys = current.keys
        return True

    def call(self, data: Any, strict: bool | None = None) -> SchemaResult:
        strict = self.strict if strict is None else strict
        errors: list[Message] = []
        if not isinstance(data, Mapping):
            errors.append(_failure(KeyPath.base(), _TYPE_MESSAGES["hash"]))
            return SchemaResult(values={}, errors=ErrorTree(messages=tuple(errors)))
        values = _validate_keys(self.keys, data, KeyPath.base(), errors, strict)
        return SchemaResult(values=values, errors=ErrorTree(messages=tuple(errors)))

    __call__ = call


def _collect_paths(keys: tuple[SchemaKey, ...], prefix: KeyPath, out: set[KeyPath]) -> None:
    for key in keys:
        path = prefix.child(key.name)
        out.add(path)
        if key.keys is not None:
            _collect_paths(key.keys, path, out)


def _failure(path: KeyPath, text: str) -> Message:
    return Message(text=text, path=path, source="schema")


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, Mapping)):
        return len(value) == 0
    return False


def _validate_keys(
    keys: tuple[SchemaKey, ...],
    data: Mapping[str, Any],
    prefix: KeyPath,
    errors: list[Message],
    strict: bool,
) -> dict[str, Any]:
    output: dict[str, Any] = {}
    for key in keys:
        path = prefix.child(key.name)
        if key.name not in data:
            if key.required:
                errors.append(_failure(path, "is missing"))
            continue
        output[key.name] = _validate_value(key, data[key.name], path, errors, strict)
    if strict:
        declared = {key.name for key in keys}
        for name in data:
            if name not in declared:
                errors.append(_failure(prefix.child(name), "is not allowed"))
    return output


def _validate_value(
    key: SchemaKey,
    value: Any,
    path: KeyPath,
    errors: list[Message],
    strict: bool,
) -> Any:
    if value is None and key.nullable:
        return None
    if key.filled and _is_blank(value):
        errors.append(_failure(path, "must be filled"))
        return value
    if not _TYPE_CHECKS[key.type](value):
        errors.append(_failure(path, _TYPE_MESSAGES[key.type]))
        return value

    if key.type == "hash" and key.keys is not None:
        return _validate_keys(key.keys, value, path, errors, strict)

    if key.type == "array":
        items: list[Any] = []
        for index, item in enumerate(value):
            item_path = path.child(index)
            if key.keys is not None:
                if not isinstance(item, Mapping):
                    errors.append(_failure(item_path, _TYPE_MESSAGES["hash"]))
                    items.append(item)
                else:
                    items.append(_validate_keys(key.keys, item, item_path, errors, strict))
            elif not _TYPE_CHECKS[key.member](item):
                errors.append(_failure(item_path, _TYPE_MESSAGES[key.member]))
                items.append(item)
            else:
                items.append(item)
        return items

    return value


# ---------------------------------------------------------------------------
# Schema loading
# ---------------------------------------------------------------------------

def schema_from_dict(raw: Any, source: str = "<dict>") -> Schema:
    """Build a Schema from plain data (the YAML declaration format).

    A bare list is shorthand for ``{"keys": [...]}``.
    """
    if isinstance(raw, list):
        raw = {"keys": raw}
    if not isinstance(raw, dict):
        raise SchemaDefinitionError(f"Schema declaration must be a mapping: {source}")
    try:
        return Schema.model_validate(raw)
    except ValidationError as exc:
        raise SchemaDefinitionError(f"Invalid schema declaration in {source}: {exc}") from exc


def load_schema_file(path: Path) -> Schema:
    """Load a schema from a YAML declaration file."""
    if not path.exists():
        raise SchemaDefinitionError(f"Schema file not found: {path}")

    with open(path, "r", encoding="utf-8") as handle:
        try:
            raw = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise SchemaDefinitionError(f"Schema file is not valid YAML: {path}: {exc}") from exc

    if raw is None:
        raise SchemaDefinitionError(f"Schema file is empty: {path}")
    return schema_from_dict(raw, source=str(path))
