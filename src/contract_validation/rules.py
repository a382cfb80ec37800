"""Per-contract rule declarations and their registry."""

from __future__ import annotations

from typing import Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from contract_validation.paths import KeyPath, expand_key_spec
from contract_validation.schema import ContractError, Schema


class InvalidKeysError(ContractError):
    """Raised when a rule names keys the contract's schema does not define."""


class Rule(BaseModel):
    """An immutable rule: trigger paths plus the body that checks them.

    An empty ``keys`` tuple makes the rule unconditional.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    keys: tuple[KeyPath, ...] = Field(default_factory=tuple)
    body: Callable[..., Any]
    spec: tuple[Any, ...] = Field(default_factory=tuple)
    name: str = ""
    each: bool = False
    order: int = 0

    @property
    def unconditional(self) -> bool:
        return not self.keys

    @property
    def own_path(self) -> KeyPath | None:
        """The single trigger path, or ``None`` for zero or several triggers."""
        if len(self.keys) == 1:
            return self.keys[0]
        return None


SchemaProvider = Callable[[], Schema | None]


class RuleRegistry:
    """Append-only rule table for one contract class.

    ``parent`` links to the registry of the nearest ancestor contract so that
    inherited rules resolve at call time, ancestors first.
    """

    def __init__(
        self,
        owner: str,
        parent: RuleRegistry | None = None,
        schema: SchemaProvider | None = None,
    ) -> None:
        self.owner = owner
        self.parent = parent
        self._schema = schema or (lambda: None)
        self._rules: list[Rule] = []

    @property
    def schema(self) -> Schema | None:
        return self._schema()

    def normalize(self, keys: tuple[Any, ...]) -> tuple[KeyPath, ...]:
        """Expand every key spec into paths, dropping duplicates but keeping order."""
        paths: dict[KeyPath, None] = {}
        for spec in keys:
            for path in expand_key_spec(spec):
                paths.setdefault(path, None)
        return tuple(paths)

    def check_keys(self, keys: tuple[Any, ...]) -> tuple[KeyPath, ...]:
        """Validate key specs against the bound schema and return their paths.

        The error message lists the offending specs exactly as the caller
        wrote them.
        """
        schema = self.schema
        invalid: list[Any] = []
        for spec in keys:
            paths = expand_key_spec(spec)
            if schema is None or not all(schema.defines(path) for path in paths):
                invalid.append(spec)
        if invalid:
            raise InvalidKeysError(
                f"{self.owner}.rule specifies keys that are not defined by the schema: {invalid!r}"
            )
        return self.normalize(keys)

    def register(
        self,
        keys: tuple[Any, ...],
        body: Callable[..., Any],
        each: bool = False,
        validate: bool = True,
    ) -> Rule:
        paths = self.check_keys(keys) if validate else self.normalize(keys)
        if each and len(paths) != 1:
            raise ContractError(f"{self.owner}.rule(each=True) requires exactly one key, got {list(keys)!r}")
        rule = Rule(
            keys=paths,
            body=body,
            spec=tuple(keys),
            name=getattr(body, "__name__", ""),
            each=each,
            order=len(self._rules),
        )
        self._rules.append(rule)
        return rule

    def all(self) -> list[Rule]:
        """Own rules in declaration order."""
        return list(self._rules)

    def inherited_and_own(self) -> list[Rule]:
        """Ancestor rules (oldest ancestor first) followed by own rules."""
        inherited = self.parent.inherited_and_own() if self.parent is not None else []
        return inherited + self._rules

    def __len__(self) -> int:
        return len(self._rules)
