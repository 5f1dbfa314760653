"""Tests for confbind.usage module."""

import io
from dataclasses import dataclass, field
from datetime import timedelta

import pytest

from confbind.exceptions import UnsupportedShapeError
from confbind.fields import env_field
from confbind.types import Uint16
from confbind.usage import DEFAULT_HEADER, FieldDoc, describe, print_usage, usage_text


@dataclass
class Database:
    password: str = env_field(
        "DB_PASSWORD,DATABASE_PASSWORD",
        required=True,
        description="Database password",
        default="",
    )


@dataclass
class AppConfig:
    port: Uint16 = env_field("PORT", env_default="8080", description="HTTP listen port", default=0)
    timeout: timedelta = env_field("TIMEOUT", default=timedelta(0))
    database: Database = field(default_factory=Database)
    internal: str = "not bound"


class TestDescribe:
    """Tests for describe()."""

    def test_only_bindable_fields(self):
        """Test fields without variable names are left out."""
        docs = describe(AppConfig())
        assert [doc.field for doc in docs] == ["port", "timeout", "database.password"]

    def test_field_doc_contents(self):
        """Test names, types, defaults and flags."""
        port, timeout, password = describe(AppConfig(), prefix="APP_")

        assert port.name == "APP_PORT"
        assert port.type_name == "uint16"
        assert port.default == "8080"
        assert port.required is False

        assert timeout.type_name == "timedelta"
        assert timeout.description == ""

        assert password.name == "APP_DB_PASSWORD"
        assert password.alternatives == ("APP_DATABASE_PASSWORD",)
        assert password.required is True

    def test_rejects_non_records(self):
        """Test the target must be a record instance."""
        with pytest.raises(UnsupportedShapeError):
            describe(AppConfig)


class TestUsageText:
    """Tests for usage_text() and print_usage()."""

    def test_format(self):
        """Test the full text layout."""
        text = usage_text(AppConfig())
        assert text.splitlines()[0] == DEFAULT_HEADER
        assert '  PORT uint16\n    \tHTTP listen port (default "8080")' in text
        assert "  TIMEOUT timedelta\n" in text
        assert (
            "  DB_PASSWORD str (alternatives: DATABASE_PASSWORD)\n"
            "    \tDatabase password (required)"
        ) in text

    def test_custom_header(self):
        """Test the header can be replaced."""
        text = usage_text(AppConfig(), header="Settings:")
        assert text.startswith("Settings:\n")

    def test_field_doc_format_without_description(self):
        """Test an entry with only a default."""
        doc = FieldDoc(field="x", env_names=("X",), type_name="int", default="1")
        assert doc.format() == '  X int\n    \t(default "1")'

    def test_print_usage(self):
        """Test printing to a stream."""
        out = io.StringIO()
        print_usage(AppConfig(), prefix="APP_", file=out)
        assert "APP_PORT" in out.getvalue()
        assert out.getvalue().endswith("\n")
