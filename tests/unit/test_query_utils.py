"""Unit tests for identifier validation and table references."""

import pytest

from pgmcp.models.error_types import InvalidIdentifierError
from pgmcp.services.query_utils import (
    MAX_IDENTIFIER_LENGTH,
    TableRef,
    require_column_name,
    split_table_schema,
    validate_column_name,
    validate_schema_name,
    validate_table_name,
)


class TestQueryUtils:
    """Unit tests for query validation utilities."""

    def test_validate_table_name_valid(self):
        """Test validation of valid table names."""
        valid_names = [
            "users",
            "user_accounts",
            "Orders123",
            "_private_table",
            "sales.orders",
            "public.users"
        ]

        for name in valid_names:
            assert validate_table_name(name) is True, f"'{name}' should be valid"

    def test_validate_table_name_invalid(self):
        """Test validation of invalid table names."""
        invalid_names = [
            "users; DROP TABLE users;",
            "users'",
            "users\"",
            "123table",  # starts with number
            "user-accounts",  # contains hyphen
            "user accounts",  # contains space
            "users/*comment*/",
            "users--comment",
            "",  # empty
            "schema.table.extra",  # too many dots
            ".table",  # starts with dot
            "schema.",  # ends with dot
            "select",  # reserved keyword
            "public.table",  # reserved keyword after the schema
            "x" * (MAX_IDENTIFIER_LENGTH + 1),
            None,
            42
        ]

        for name in invalid_names:
            assert validate_table_name(name) is False, f"'{name}' should be invalid"

    def test_validate_schema_name(self):
        """Test validation of schema names."""
        assert validate_schema_name("public") is True
        assert validate_schema_name("_internal") is True
        assert validate_schema_name("public.schema") is False
        assert validate_schema_name("public; DROP SCHEMA public;") is False
        assert validate_schema_name("") is False

    def test_validate_column_name(self):
        """Test validation of column names."""
        assert validate_column_name("created_at") is True
        assert validate_column_name("Email2") is True
        assert validate_column_name("id; --") is False
        assert validate_column_name("first name") is False
        assert validate_column_name("FROM") is False
        assert validate_column_name("t.id") is False

    def test_identifier_length_limit(self):
        assert validate_column_name("c" * MAX_IDENTIFIER_LENGTH) is True
        assert validate_column_name("c" * (MAX_IDENTIFIER_LENGTH + 1)) is False

    def test_require_column_name_raises(self):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            require_column_name("name; DROP TABLE users")

        assert exc_info.value.error_kind == "InvalidIdentifier"
        assert exc_info.value.details['kind'] == "column"

    def test_split_table_schema(self):
        """Test splitting schema-qualified table names."""
        assert split_table_schema("public.users") == ("public", "users")
        assert split_table_schema("users") == (None, "users")

        with pytest.raises(ValueError):
            split_table_schema("a.b.c")


class TestTableRef:
    """Parsing caller-supplied table names."""

    def test_plain_name(self):
        table = TableRef.parse("users")

        assert table.name == "users"
        assert table.schema is None
        assert table.schema_name == "public"
        assert table.sql == "users"

    def test_qualified_name(self):
        table = TableRef.parse("sales.orders")

        assert table.schema_name == "sales"
        assert table.sql == "sales.orders"
        assert str(table) == "sales.orders"

    def test_schema_argument(self):
        table = TableRef.parse("orders", schema="sales")

        assert table.sql == "sales.orders"

    def test_embedded_schema_wins(self):
        table = TableRef.parse("archive.orders", schema="sales")

        assert table.schema == "archive"

    def test_invalid_name_raises(self):
        with pytest.raises(InvalidIdentifierError) as exc_info:
            TableRef.parse("users; DROP TABLE users;--")

        assert exc_info.value.details['kind'] == "table"
        assert exc_info.value.recoverable is False

    def test_invalid_schema_argument_raises(self):
        with pytest.raises(InvalidIdentifierError):
            TableRef.parse("orders", schema="sales orders")

    def test_names_folded_like_unquoted_identifiers(self):
        table = TableRef.parse("Sales.Orders")

        assert table.name == "orders"
        assert table.schema_name == "sales"
        assert table.sql == "sales.orders"
        assert TableRef.parse("Orders", schema="Archive").sql == "archive.orders"
        assert TableRef.parse("USERS") == TableRef.parse("users")
