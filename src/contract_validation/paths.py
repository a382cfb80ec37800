"""Key paths into nested input structures and rule key-spec normalization."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

Segment = Union[str, int]


class KeyPath(BaseModel):
    """Ordered, hashable location inside a nested input.

    The empty path is reserved for the whole input (base errors) and is never
    a valid rule trigger.
    """

    model_config = ConfigDict(frozen=True)

    segments: tuple[Segment, ...] = Field(default_factory=tuple)

    @classmethod
    def of(cls, *segments: Segment) -> KeyPath:
        return cls(segments=tuple(segments))

    @classmethod
    def base(cls) -> KeyPath:
        return _BASE

    @classmethod
    def parse(cls, spec: Any) -> KeyPath:
        """Build a path from a name, an index, a segment sequence or a dotted string.

        A string without dots is always one name, even when it is all digits;
        only inside dotted strings do digit tokens become indexes.
        """
        if isinstance(spec, KeyPath):
            return spec
        if isinstance(spec, bool):
            raise TypeError(f"Unsupported key path segment: {spec!r}")
        if isinstance(spec, int):
            return cls(segments=(spec,))
        if isinstance(spec, str):
            if not spec:
                raise ValueError("Key path must not be empty")
            if "." not in spec:
                return cls(segments=(spec,))
            return cls(segments=tuple(_parse_token(token) for token in spec.split(".")))
        if isinstance(spec, (tuple, list)):
            segments: list[Segment] = []
            for item in spec:
                segments.extend(cls.parse(item).segments)
            return cls(segments=tuple(segments))
        raise TypeError(f"Unsupported key path specification: {spec!r}")

    @property
    def is_base(self) -> bool:
        return not self.segments

    @property
    def root(self) -> Segment:
        if not self.segments:
            raise ValueError("The base path has no root segment")
        return self.segments[0]

    @property
    def parent(self) -> KeyPath:
        return KeyPath(segments=self.segments[:-1])

    @property
    def last(self) -> Segment:
        return self.segments[-1]

    def child(self, segment: Segment) -> KeyPath:
        return KeyPath(segments=self.segments + (segment,))

    def is_ancestor_of(self, other: KeyPath) -> bool:
        """True when this path is a (non-strict) prefix of ``other``."""
        return other.segments[: len(self.segments)] == self.segments

    def overlaps(self, other: KeyPath) -> bool:
        """True when either path is an ancestor of the other."""
        return self.is_ancestor_of(other) or other.is_ancestor_of(self)

    @property
    def depth(self) -> int:
        return len(self.segments)

    def __str__(self) -> str:
        out = ""
        for segment in self.segments:
            if isinstance(segment, int):
                out += f"[{segment}]"
            else:
                out += f".{segment}" if out else segment
        return out

    def __repr__(self) -> str:
        return f"KeyPath({str(self)!r})"


_BASE = KeyPath()


def _parse_token(token: str) -> Segment:
    if not token:
        raise ValueError("Key path contains an empty segment")
    if token.isdigit():
        return int(token)
    return token


def expand_key_spec(spec: Any) -> list[KeyPath]:
    """Normalize one rule key declaration into the paths it names.

    Accepted shapes:
    - ``"login"`` or ``"details.address.street"``
    - ``("details", "address")``
    - ``{"details": "address"}``
    - ``{"details": {"address": "street"}}``
    - ``{"details": ["address", "phone"]}``
    """
    if isinstance(spec, Mapping):
        paths: list[KeyPath] = []
        for root, sub in spec.items():
            prefix = KeyPath.parse(root)
            for tail in _expand_sub(sub):
                paths.append(KeyPath(segments=prefix.segments + tail.segments))
        if not paths:
            raise ValueError(f"Empty key specification: {spec!r}")
        return paths
    return [KeyPath.parse(spec)]


def _expand_sub(sub: Any) -> list[KeyPath]:
    if isinstance(sub, Mapping):
        return expand_key_spec(sub)
    if isinstance(sub, list):
        paths: list[KeyPath] = []
        for item in sub:
            paths.extend(_expand_sub(item))
        return paths
    return [KeyPath.parse(sub)]


def lookup(data: Any, path: KeyPath) -> tuple[bool, Any]:
    """Return (found, value) for ``path`` inside nested mappings and sequences."""
    current = data
    for segment in path.segments:
        if isinstance(segment, int):
            if isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
                if 0 <= segment < len(current):
                    current = current[segment]
                    continue
            return False, None
        if not isinstance(current, Mapping) or segment not in current:
            return False, None
        current = current[segment]
    return True, current
