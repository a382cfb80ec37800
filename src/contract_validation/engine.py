"""Rule execution over a schema result.

Rules run in the order they are handed in. A keyed rule only runs when each
of its trigger paths is present in the validated values and no schema
failure sits at, above or below that path. Failures a rule records are
appended to the schema's error tree, never replacing what is already there.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from typing import Any

from contract_validation.messages import ErrorTree, Message
from contract_validation.paths import KeyPath, expand_key_spec, lookup
from contract_validation.rules import Rule
from contract_validation.schema import ContractError, SchemaResult

logger = logging.getLogger(__name__)

_MISSING = object()


class RuleError(ContractError):
    """Raised when a rule body misuses its failure handles."""


def _single_path(key: Any) -> KeyPath:
    paths = expand_key_spec(key)
    if len(paths) != 1:
        raise KeyError(key)
    return paths[0]


class Values(Mapping):
    """Read-only accessor over the validated value tree.

    Accepts plain names, dotted strings, segment tuples and single-path
    mappings such as ``{"user": "login"}``.
    """

    def __init__(self, data: Mapping[str, Any]) -> None:
        self._data = data

    @property
    def data(self) -> Mapping[str, Any]:
        return self._data

    def __getitem__(self, key: Any) -> Any:
        if isinstance(key, str) and key in self._data:
            return self._data[key]
        found, value = lookup(self._data, _single_path(key))
        if not found:
            raise KeyError(key)
        return value

    def key_exists(self, key: Any) -> bool:
        found, _ = lookup(self._data, _single_path(key))
        return found

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Values({dict(self._data)!r})"


class FailureHandle:
    """Records failures against one target path (the empty path is the base)."""

    def __init__(self, path: KeyPath, sink: list[Message]) -> None:
        self.path = path
        self._sink = sink

    def failure(self, text: str, **meta: Any) -> None:
        self._sink.append(Message(text=text, path=self.path, source="rule", meta=meta))


class RuleContext:
    """Second argument handed to every rule body."""

    def __init__(
        self,
        rule: Rule,
        values: Values,
        schema_result: SchemaResult,
        context: dict[str, Any],
        path: KeyPath | None,
        value: Any = _MISSING,
    ) -> None:
        self.rule = rule
        self.values = values
        self.context = context
        self._schema_result = schema_result
        self._path = path
        self._value = value
        self.failures: list[Message] = []

    @property
    def path(self) -> KeyPath | None:
        return self._path

    @property
    def value(self) -> Any:
        if self._value is not _MISSING:
            return self._value
        if self._path is None:
            raise RuleError(f"Rule '{self.rule.name}' has no single key to read a value from")
        return self.values[self._path.segments]

    @property
    def base(self) -> FailureHandle:
        return FailureHandle(KeyPath.base(), self.failures)

    def key(self, path: Any = None) -> FailureHandle:
        """Failure handle for ``path``, or for the rule's own key.

        Explicit paths do not have to be declared by the schema.
        """
        if path is not None:
            return FailureHandle(KeyPath.parse(path), self.failures)
        if self.rule.unconditional:
            return self.base
        if self._path is None:
            raise RuleError(
                f"Rule '{self.rule.name}' has keys {[str(k) for k in self.rule.keys]}; "
                "pass an explicit path to key()"
            )
        return FailureHandle(self._path, self.failures)

    def failure(self, text: str, **meta: Any) -> None:
        self.key().failure(text, **meta)

    def key_exists(self, path: Any = None) -> bool:
        if path is None:
            if self._path is None:
                return False
            return self.values.key_exists(self._path.segments)
        return self.values.key_exists(path)

    def schema_error(self, path: Any) -> bool:
        return self._schema_result.error_at(path)


class RuleExecutor:
    """Runs eligible rules and folds their failures into the schema errors."""

    def execute(
        self,
        schema_result: SchemaResult,
        rules: list[Rule],
        context: dict[str, Any] | None = None,
    ) -> ErrorTree:
        errors = schema_result.errors
        values = Values(schema_result.values)
        context = context if context is not None else {}

        for rule in rules:
            if not self.is_eligible(rule, schema_result):
                logger.debug("Skipping rule %s: keys %s did not pass the schema", rule.name, _render(rule))
                continue
            if rule.each:
                failures = self._run_each(rule, values, schema_result, context)
            else:
                failures = self._run(
                    RuleContext(rule, values, schema_result, context, rule.own_path)
                )
            logger.debug("Rule %s on %s recorded %d failure(s)", rule.name, _render(rule), len(failures))
            errors = errors.merge(failures)

        return errors

    def is_eligible(self, rule: Rule, schema_result: SchemaResult) -> bool:
        for path in rule.keys:
            found, _ = lookup(schema_result.values, path)
            if not found:
                return False
            for message in schema_result.errors:
                if message.is_base:
                    continue
                if message.path.is_ancestor_of(path):
                    return False
                # Element failures of an each-rule are skipped per element.
                if not rule.each and path.is_ancestor_of(message.path):
                    return False
        return True

    def _run(self, ctx: RuleContext) -> list[Message]:
        ctx.rule.body(ctx.values, ctx)
        return ctx.failures

    def _run_each(
        self,
        rule: Rule,
        values: Values,
        schema_result: SchemaResult,
        context: dict[str, Any],
    ) -> list[Message]:
        path = rule.keys[0]
        _, items = lookup(schema_result.values, path)
        if not isinstance(items, (list, tuple)):
            raise RuleError(f"Rule '{rule.name}' iterates '{path}', which is not an array")

        failures: list[Message] = []
        for index, item in enumerate(items):
            item_path = path.child(index)
            if schema_result.error_at(item_path):
                continue
            failures.extend(
                self._run(RuleContext(rule, values, schema_result, context, item_path, item))
            )
        return failures


def _render(rule: Rule) -> str:
    if rule.unconditional:
        return "<base>"
    return ", ".join(str(path) for path in rule.keys)
