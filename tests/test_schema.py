"""Tests for schema declarations, structural validation and YAML loading."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from contract_validation.paths import KeyPath
from contract_validation.schema import (
    Schema,
    SchemaDefinitionError,
    SchemaKey,
    load_schema_file,
    optional,
    required,
    schema_from_dict,
)

FIXTURES = Path(__file__).parent / "fixtures"


def _user_schema() -> Schema:
    return Schema.define(
        required("email").filled("string"),
        optional("login").filled("string"),
        optional("details").hash(
            optional("address").hash(
                required("street").value("string"),
            ),
        ),
    )


class TestDeclarations:
    def test_builder_output(self) -> None:
        key = optional("login").filled("string")
        assert key == SchemaKey(name="login", required=False, type="string", filled=True)

    def test_key_paths(self) -> None:
        assert _user_schema().key_paths() == {
            KeyPath.parse("email"),
            KeyPath.parse("login"),
            KeyPath.parse("details"),
            KeyPath.parse("details.address"),
            KeyPath.parse("details.address.street"),
        }

    def test_defines(self) -> None:
        schema = Schema.define(required("items").array(required("sku").filled("string")))
        assert schema.defines("items")
        assert schema.defines("items.3.sku")
        assert not schema.defines("items.sku")
        assert not schema.defines("items.3.name")
        assert not schema.defines("items.3.sku.0")
        assert not schema.defines(KeyPath.base())

    def test_nested_schema_reuse(self) -> None:
        request = Schema.define(required("user").hash(_user_schema()))
        assert request.defines("user.details.address.street")

    def test_duplicate_keys_rejected(self) -> None:
        with pytest.raises(SchemaDefinitionError, match="Duplicate key 'email'"):
            Schema.define(required("email").value("string"), optional("email").value("string"))

    def test_nested_keys_need_hash_or_array(self) -> None:
        with pytest.raises(Exception, match="nested keys require type"):
            SchemaKey(name="login", type="string", keys=(SchemaKey(name="first"),))

    def test_member_only_for_arrays(self) -> None:
        with pytest.raises(Exception, match="member type is only valid for arrays"):
            SchemaKey(name="login", type="string", member="string")

    def test_member_type_and_keys_cannot_mix(self) -> None:
        with pytest.raises(SchemaDefinitionError, match="cannot mix"):
            required("items").array("string", required("sku").value("string"))


class TestValidation:
    def test_valid_input(self) -> None:
        result = _user_schema().call({"email": "jane@doe.org", "details": {"address": {"street": "Main 1"}}})
        assert result.success
        assert result.values == {"email": "jane@doe.org", "details": {"address": {"street": "Main 1"}}}

    def test_missing_and_filled(self) -> None:
        schema = _user_schema()
        assert schema({}).errors.to_dict() == {"email": ["is missing"]}
        assert schema({"email": ""}).errors.to_dict() == {"email": ["must be filled"]}
        assert schema({"email": None}).errors.to_dict() == {"email": ["must be filled"]}

    def test_whitespace_is_filled(self) -> None:
        assert _user_schema()({"email": " "}).success

    def test_hash_failures(self) -> None:
        schema = _user_schema()
        assert schema({"email": "a", "details": None}).errors.to_dict() == {"details": ["must be a hash"]}
        assert schema({"email": "a", "details": {"address": {}}}).errors.to_dict() == {
            "details": {"address": {"street": ["is missing"]}}
        }

    def test_value_type_messages(self) -> None:
        schema = Schema.define(
            optional("s").value("string"),
            optional("i").value("integer"),
            optional("f").value("float"),
            optional("n").value("number"),
            optional("b").value("bool"),
            optional("a").value("array"),
        )
        result = schema({"s": 1, "i": True, "f": 1, "n": "1", "b": 0, "a": "x"})
        assert result.errors.to_dict() == {
            "s": ["must be a string"],
            "i": ["must be an integer"],
            "f": ["must be a float"],
            "n": ["must be a number"],
            "b": ["must be boolean"],
            "a": ["must be an array"],
        }

    def test_maybe_accepts_none(self) -> None:
        schema = Schema.define(required("nick").maybe("string"))
        assert schema({"nick": None}).success
        assert schema({"nick": 3}).errors.to_dict() == {"nick": ["must be a string"]}

    def test_array_members(self) -> None:
        schema = Schema.define(required("tags").array("string"))
        assert schema({"tags": ["a", 2, "c", None]}).errors.to_dict() == {
            "tags": {1: ["must be a string"], 3: ["must be a string"]}
        }

    def test_array_of_hashes(self) -> None:
        schema = Schema.define(required("items").array(required("sku").filled("string")))
        result = schema({"items": [{"sku": "A"}, {"sku": ""}, "oops"]})
        assert result.errors.to_dict() == {
            "items": {1: {"sku": ["must be filled"]}, 2: ["must be a hash"]}
        }
        assert result.values["items"][0] == {"sku": "A"}

    def test_undeclared_keys_dropped(self) -> None:
        result = _user_schema()({"email": "a", "admin": True, "details": {"address": {"street": "x", "zip": 1}}})
        assert result.values == {"email": "a", "details": {"address": {"street": "x"}}}

    def test_strict_mode(self) -> None:
        schema = Schema.define(required("email").value("string"), strict=True)
        assert schema({"email": "a", "admin": True}).errors.to_dict() == {"admin": ["is not allowed"]}
        assert _user_schema().call({"email": "a", "admin": True}, strict=True).errors.to_dict() == {
            "admin": ["is not allowed"]
        }

    def test_non_mapping_input(self) -> None:
        result = _user_schema()(["not", "a", "hash"])
        assert result.errors.to_dict() == {None: ["must be a hash"]}
        assert result.values == {}

    def test_errors_follow_declaration_order(self) -> None:
        result = _user_schema()({"details": None, "login": 1})
        assert [str(path) for path in result.errors.paths] == ["email", "login", "details"]

    def test_error_at(self) -> None:
        result = _user_schema()({"email": "a", "details": None})
        assert result.error_at("details.address.street")
        assert not result.error_at("login")


class TestLoading:
    def test_load_fixture(self) -> None:
        assert load_schema_file(FIXTURES / "user_schema.yaml") == _user_schema()

    def test_list_root_shorthand(self) -> None:
        schema = load_schema_file(FIXTURES / "schema_list_root.yaml")
        assert schema.defines("items.0.sku")
        assert schema.defines("tags.2")
        assert not schema.defines("items.sku")
        assert schema({"tags": ["a", 1]}).errors.to_dict() == {"tags": {1: ["must be a string"]}}

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SchemaDefinitionError, match="Schema file not found"):
            load_schema_file(tmp_path / "nope.yaml")

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        with pytest.raises(SchemaDefinitionError, match="Schema file is empty"):
            load_schema_file(path)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "broken.yaml"
        path.write_text("keys: [unclosed", encoding="utf-8")
        with pytest.raises(SchemaDefinitionError, match="not valid YAML"):
            load_schema_file(path)

    def test_unknown_type(self) -> None:
        with pytest.raises(SchemaDefinitionError, match="Invalid schema declaration"):
            load_schema_file(FIXTURES / "schema_unknown_type.yaml")

    def test_scalar_root(self) -> None:
        with pytest.raises(SchemaDefinitionError, match="must be a mapping"):
            schema_from_dict("email")

    def test_strict_flag_from_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "strict.yaml"
        path.write_text(
            textwrap.dedent(
                """\
                strict: true
                keys:
                  - name: email
                    type: string
                """
            ),
            encoding="utf-8",
        )
        schema = load_schema_file(path)
        assert schema.strict is True
        assert schema({"email": "a", "x": 1}).errors.to_dict() == {"x": ["is not allowed"]}
