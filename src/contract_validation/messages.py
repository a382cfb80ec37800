"""Failure messages and the merged, path-keyed error tree."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator
from typing import Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from contract_validation.paths import KeyPath, Segment

MessageSource = Literal["schema", "rule"]


class Message(BaseModel):
    """A single failure attached to a key path or to the whole input."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., min_length=1)
    path: KeyPath = Field(default_factory=KeyPath.base)
    source: MessageSource = "rule"
    meta: dict[str, Any] = Field(default_factory=dict)

    @property
    def is_base(self) -> bool:
        return self.path.is_base

    @property
    def is_keyed(self) -> bool:
        return not self.path.is_base

    @property
    def is_rule(self) -> bool:
        return self.source == "rule"

    @property
    def is_schema(self) -> bool:
        return self.source == "schema"

    def __str__(self) -> str:
        return self.text


MessagePredicate = Union[str, Callable[[Message], bool]]


class _Node:
    __slots__ = ("messages", "children")

    def __init__(self) -> None:
        self.messages: list[str] = []
        self.children: dict[Segment | None, _Node] = {}

    def child(self, segment: Segment | None) -> _Node:
        node = self.children.get(segment)
        if node is None:
            node = self.children[segment] = _Node()
        return node

    def dump(self) -> Any:
        children = {segment: node.dump() for segment, node in self.children.items()}
        if self.messages and children:
            return [list(self.messages), children]
        if children:
            return children
        return list(self.messages)


class ErrorTree(BaseModel):
    """Ordered collection of failures rendered as a nested mapping.

    Messages keep insertion order, duplicates included. Merging only ever
    appends, so schema failures always precede rule failures at a path.
    """

    model_config = ConfigDict(frozen=True)

    messages: tuple[Message, ...] = Field(default_factory=tuple)

    @classmethod
    def empty(cls) -> ErrorTree:
        return cls()

    def merge(self, messages: Iterable[Message]) -> ErrorTree:
        added = tuple(messages)
        if not added:
            return self
        return ErrorTree(messages=self.messages + added)

    @property
    def is_empty(self) -> bool:
        return not self.messages

    @property
    def paths(self) -> list[KeyPath]:
        """Distinct failing paths in order of first occurrence."""
        seen: dict[KeyPath, None] = {}
        for message in self.messages:
            seen.setdefault(message.path, None)
        return list(seen)

    def at(self, path: Any) -> list[Message]:
        target = KeyPath.parse(path)
        return [message for message in self.messages if message.path == target]

    def error_at(self, path: Any) -> bool:
        """True when a failure sits at ``path``, above it or below it."""
        target = KeyPath.parse(path)
        return any(
            message.is_keyed and message.path.overlaps(target) for message in self.messages
        )

    def filter(self, predicate: MessagePredicate) -> list[Message]:
        """Select messages by a callable or by a boolean ``Message`` attribute name."""
        if isinstance(predicate, str):
            name = predicate
            if not isinstance(getattr(Message, name, None), property):
                raise ValueError(f"Unknown message predicate: {name}")
            return [message for message in self.messages if getattr(message, name)]
        return [message for message in self.messages if predicate(message)]

    def to_dict(self) -> dict[Any, Any]:
        """Nested mapping mirroring the input shape.

        A location holding both its own messages and nested failures renders
        as ``[own_messages, children]``. Base messages live under ``None``.
        """
        root = _Node()
        for message in self.messages:
            if message.is_base:
                root.child(None).messages.append(message.text)
                continue
            node = root
            for segment in message.path.segments:
                node = node.child(segment)
            node.messages.append(message.text)
        return {segment: node.dump() for segment, node in root.children.items()}

    to_h = to_dict

    def to_json(self) -> str:
        """Deterministic JSON rendering; the base slot is keyed ``"null"``."""
        return json.dumps(_jsonable(self.to_dict()), separators=(",", ":"))

    def __len__(self) -> int:
        return len(self.messages)

    def __bool__(self) -> bool:
        return bool(self.messages)

    def __iter__(self) -> Iterator[Message]:  # type: ignore[override]
        return iter(self.messages)


def _jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {"null" if key is None else str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_jsonable(item) for item in value]
    return value
