"""Tests for confbind.parsers module."""

import io
from dataclasses import dataclass, field

import pytest

from confbind.exceptions import DecodeError, UnsupportedFormatError
from confbind.parsers import (
    EnvParser,
    JSONParser,
    Parser,
    TOMLParser,
    YAMLParser,
    new_parser,
    supported_formats,
)


@dataclass
class Person:
    name: str = ""
    surname: str = ""


@dataclass
class Endpoint:
    host: str = ""
    port: int = 0


@dataclass
class Server:
    endpoint: Endpoint = field(default_factory=Endpoint)
    tags: list[str] = field(default_factory=list)


YAML_DATA = """
name: Frank
surname: Zappa
"""

JSON_DATA = '{"host": "localhost", "port": 8080}'

TOML_DATA = """
tags = ["a", "b"]

[endpoint]
host = "example.org"
port = 443
"""

ENV_DATA = """
# comment
SVC_NAME=from-dotenv
QUOTED="with spaces"
export EXPORTED=yes
BARE
"""


class TestNewParser:
    """Tests for the parser factory."""

    @pytest.mark.parametrize(
        ("fmt", "expected"),
        [
            ("yaml", YAMLParser),
            ("yml", YAMLParser),
            (".yaml", YAMLParser),
            (".yml", YAMLParser),
            ("json", JSONParser),
            (".json", JSONParser),
            ("toml", TOMLParser),
            (".toml", TOMLParser),
            ("env", EnvParser),
            (".env", EnvParser),
        ],
    )
    def test_known_formats(self, fmt, expected):
        """Test each format name maps to its parser."""
        parser = new_parser(fmt)
        assert isinstance(parser, expected)
        assert isinstance(parser, Parser)

    @pytest.mark.parametrize("fmt", ["ini", "xml", "", "YAML"])
    def test_unknown_format(self, fmt):
        """Test unknown formats raise UnsupportedFormatError."""
        with pytest.raises(UnsupportedFormatError) as exc_info:
            new_parser(fmt)
        assert exc_info.value.format == fmt
        assert "file format not supported" in str(exc_info.value)

    def test_supported_formats(self):
        """Test the list of format names."""
        assert set(supported_formats()) == {"yaml", "yml", "json", "toml", "env"}


class TestStructuredParsers:
    """Tests for YAML, JSON and TOML parsers."""

    def test_yaml(self):
        """Test YAML documents populate the target."""
        person = Person()
        new_parser("yaml").parse(io.StringIO(YAML_DATA), person)
        assert person.name == "Frank"
        assert person.surname == "Zappa"

    def test_json(self):
        """Test JSON documents populate the target."""
        endpoint = Endpoint()
        new_parser("json").parse(io.StringIO(JSON_DATA), endpoint)
        assert endpoint.host == "localhost"
        assert endpoint.port == 8080

    def test_toml_nested(self):
        """Test TOML tables populate nested records."""
        server = Server()
        new_parser("toml").parse(io.StringIO(TOML_DATA), server)
        assert server.endpoint.host == "example.org"
        assert server.endpoint.port == 443
        assert server.tags == ["a", "b"]

    def test_binary_streams(self):
        """Test parsers accept binary streams."""
        endpoint = Endpoint()
        new_parser("json").parse(io.BytesIO(JSON_DATA.encode()), endpoint)
        assert endpoint.port == 8080

        server = Server()
        new_parser("toml").parse(io.BytesIO(TOML_DATA.encode()), server)
        assert server.endpoint.port == 443

    def test_empty_yaml_document(self):
        """Test an empty YAML document changes nothing."""
        person = Person(name="kept")
        new_parser("yaml").parse(io.StringIO(""), person)
        assert person.name == "kept"

    @pytest.mark.parametrize(
        ("fmt", "data"),
        [
            ("yaml", "name: [unclosed"),
            ("json", "{not json"),
            ("toml", "name = "),
        ],
    )
    def test_malformed_documents(self, fmt, data):
        """Test syntax errors raise DecodeError with the parser error as cause."""
        with pytest.raises(DecodeError) as exc_info:
            new_parser(fmt).parse(io.StringIO(data), Person())
        assert exc_info.value.cause is not None

    def test_source_name_in_errors(self, tmp_path):
        """Test decode errors name the file."""
        path = tmp_path / "bad.json"
        path.write_text('{"port": "eighty"}')
        with path.open() as f, pytest.raises(DecodeError) as exc_info:
            JSONParser().parse(f, Endpoint())
        assert exc_info.value.source == str(path)
        assert exc_info.value.field_name == "port"


class TestEnvParser:
    """Tests for the dotenv parser."""

    def test_writes_into_environment(self):
        """Test variables are written into the mapping and the target is untouched."""
        environ = {}
        person = Person()
        EnvParser(environ).parse(io.StringIO(ENV_DATA), person)
        assert environ == {
            "SVC_NAME": "from-dotenv",
            "QUOTED": "with spaces",
            "EXPORTED": "yes",
        }
        assert person == Person()

    def test_overrides_existing_values(self):
        """Test file values replace variables already set."""
        environ = {"SVC_NAME": "old", "OTHER": "kept"}
        new_parser("env", environ=environ).parse(io.StringIO(ENV_DATA), Person())
        assert environ["SVC_NAME"] == "from-dotenv"
        assert environ["OTHER"] == "kept"


class TestInvalidEncoding:
    """Tests for byte streams that are not UTF-8."""

    @pytest.mark.parametrize(
        ("parser", "data"),
        [
            (JSONParser(), b'{"host": "\xff"}'),
            (TOMLParser(), b'host = "\xff"'),
            (EnvParser({}), b"HOST=\xff\n"),
        ],
    )
    def test_invalid_utf8_raises_decode_error(self, parser, data):
        """Test undecodable bytes raise DecodeError with the codec error as cause."""
        with pytest.raises(DecodeError) as exc_info:
            parser.parse(io.BytesIO(data), Endpoint())
        assert isinstance(exc_info.value.cause, UnicodeDecodeError)

    def test_invalid_utf8_names_the_file(self, tmp_path):
        """Test the file name is reported for undecodable files."""
        path = tmp_path / "bad.json"
        path.write_bytes(b'{"host": "\xff"}')
        with path.open("rb") as f, pytest.raises(DecodeError) as exc_info:
            JSONParser().parse(f, Endpoint())
        assert exc_info.value.source == str(path)
