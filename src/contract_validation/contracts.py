"""Contract base class, its configuration and the validation result."""

from __future__ import annotations

import logging
from typing import Any, Callable, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from contract_validation.engine import RuleExecutor
from contract_validation.messages import ErrorTree
from contract_validation.paths import KeyPath, lookup
from contract_validation.rules import RuleRegistry
from contract_validation.schema import ContractError, Schema

logger = logging.getLogger(__name__)


class MissingSchemaError(ContractError):
    """Raised when a contract without a schema is called."""


class ContractConfig(BaseModel):
    """Per-class contract settings."""

    model_config = ConfigDict(frozen=True)

    name: str | None = Field(
        default=None,
        description="Name used in diagnostics; defaults to the class name",
    )
    validate_keys: bool = Field(
        default=True,
        description="Reject rules whose keys are not defined by the schema",
    )
    strict_keys: bool = Field(
        default=False,
        description="Report input keys the schema does not declare",
    )


class Result(BaseModel):
    """Outcome of a contract call."""

    model_config = ConfigDict(frozen=True)

    values: dict[str, Any] = Field(default_factory=dict)
    errors: ErrorTree = Field(default_factory=ErrorTree)
    context: dict[str, Any] = Field(default_factory=dict)

    @property
    def success(self) -> bool:
        return self.errors.is_empty

    @property
    def failure(self) -> bool:
        return not self.success

    def error_at(self, path: Any) -> bool:
        return self.errors.error_at(path)

    def __getitem__(self, key: Any) -> Any:
        found, value = lookup(self.values, KeyPath.parse(key))
        if not found:
            raise KeyError(key)
        return value

    def to_dict(self) -> dict[str, Any]:
        return dict(self.values)


class Contract:
    """Base class for contracts: a schema plus domain rules.

    Subclasses assign ``schema`` and declare rules with the ``rule``
    decorator after the class body::

        class NewUserContract(Contract):
            schema = Schema.define(required("email").filled("string"))

        @NewUserContract.rule("email")
        def email_format(values, ctx):
            if "@" not in values["email"]:
                ctx.failure("is not an email")

    Rules of parent contracts run before the subclass's own rules.
    """

    schema: ClassVar[Schema | None] = None
    config: ClassVar[ContractConfig] = ContractConfig()
    _rules: ClassVar[RuleRegistry]

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        parent = cls._rules
        cls._rules = RuleRegistry(
            owner=cls.config.name if "config" in cls.__dict__ and cls.config.name else cls.__name__,
            parent=parent,
            schema=lambda: cls.schema,
        )

    @classmethod
    def rule(cls, *keys: Any, each: bool = False) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Declare a rule on ``keys`` (none for an unconditional rule).

        Keys are checked against the schema right away, before the body is
        attached.
        """
        validate = cls.config.validate_keys
        if validate:
            cls._rules.check_keys(keys)

        def decorator(body: Callable[..., Any]) -> Callable[..., Any]:
            cls._rules.register(keys, body, each=each, validate=validate)
            return body

        return decorator

    @classmethod
    def rules(cls) -> RuleRegistry:
        return cls._rules

    def __call__(self, data: Any, context: dict[str, Any] | None = None) -> Result:
        cls = type(self)
        if cls.schema is None:
            raise MissingSchemaError(f"{cls._rules.owner} does not define a schema")

        strict = True if cls.config.strict_keys else None
        schema_result = cls.schema.call(data, strict=strict)
        context = dict(context or {})
        rules = cls._rules.inherited_and_own()
        logger.debug(
            "%s: schema produced %d failure(s), evaluating %d rule(s)",
            cls._rules.owner,
            len(schema_result.errors),
            len(rules),
        )
        errors = RuleExecutor().execute(schema_result, rules, context)
        return Result(values=schema_result.values, errors=errors, context=context)


Contract._rules = RuleRegistry(owner="Contract")
