"""Public API for contract-validation."""

from contract_validation.contracts import Contract, ContractConfig, MissingSchemaError, Result
from contract_validation.diagnostics import SchemaIssue, SchemaReport, check_schema_file
from contract_validation.engine import FailureHandle, RuleContext, RuleError, RuleExecutor, Values
from contract_validation.messages import ErrorTree, Message
from contract_validation.paths import KeyPath, expand_key_spec, lookup
from contract_validation.rules import InvalidKeysError, Rule, RuleRegistry
from contract_validation.schema import (
    ContractError,
    Schema,
    SchemaDefinitionError,
    SchemaKey,
    SchemaResult,
    load_schema_file,
    optional,
    required,
    schema_from_dict,
)

__all__ = [
    # Contracts
    "Contract",
    "ContractConfig",
    "Result",
    # Errors
    "ContractError",
    "InvalidKeysError",
    "MissingSchemaError",
    "RuleError",
    "SchemaDefinitionError",
    # Key paths
    "KeyPath",
    "expand_key_spec",
    "lookup",
    # Schema
    "Schema",
    "SchemaKey",
    "SchemaResult",
    "load_schema_file",
    "optional",
    "required",
    "schema_from_dict",
    # Rules and execution
    "FailureHandle",
    "Rule",
    "RuleContext",
    "RuleExecutor",
    "RuleRegistry",
    "Values",
    # Error tree
    "ErrorTree",
    "Message",
    # Diagnostics
    "SchemaIssue",
    "SchemaReport",
    "check_schema_file",
]
