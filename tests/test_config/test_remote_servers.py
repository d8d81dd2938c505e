"""Tests for remote-server list parsing."""

import re

import pytest

from chat_cli.config import RemoteServerConfigError, TransportKind, parse_remote_servers
from chat_cli.config.remote_servers import parse_remote_server_entry


def test_empty_list() -> None:
    """Test an empty or blank list configures no servers."""
    assert parse_remote_servers("") == []
    assert parse_remote_servers("   ") == []
    assert parse_remote_servers(None) == []


def test_stdio_entry_with_args() -> None:
    """Test pipe entries split their argument string shell-style."""
    server = parse_remote_server_entry("fs|stdio-pipe|npx|-y '@scope/server fs' /data")

    assert server.name == "fs"
    assert server.transport_kind is TransportKind.STDIO_PIPE
    assert server.endpoint == "npx"
    assert server.args == ("-y", "@scope/server fs", "/data")


@pytest.mark.parametrize("alias", ["stdio", "pipe", "STDIO-PIPE"])
def test_stdio_aliases(alias: str) -> None:
    """Test transport aliases are accepted case-insensitively."""
    server = parse_remote_server_entry(f"git|{alias}|uvx")
    assert server.transport_kind is TransportKind.STDIO_PIPE
    assert server.args == ()


def test_http_entry() -> None:
    """Test streamed-http entries take a URL."""
    server = parse_remote_server_entry(" docs | streamable-http | https://example.com/mcp ")

    assert server.name == "docs"
    assert server.transport_kind is TransportKind.STREAMED_HTTP
    assert server.endpoint == "https://example.com/mcp"


def test_order_preserved() -> None:
    """Test servers keep their configured order and blank entries are skipped."""
    servers = parse_remote_servers("b|stdio|cmd-b,,a|stdio|cmd-a")
    assert [s.name for s in servers] == ["b", "a"]


@pytest.mark.parametrize(
    ("raw", "message"),
    [
        ("git|stdio", "name|transport|endpoint|args"),
        ("|stdio|uvx", "empty name"),
        ("a:b|stdio|uvx", "may not contain ':'"),
        ("git|smoke-signal|uvx", "Unknown transport"),
        ("git|stdio|", "empty endpoint"),
        ("web|http|localhost:8000", "needs an http(s) URL"),
        ("web|http|http://h/mcp|--flag", "does not take args"),
        ("git|stdio|uvx|'unclosed", "Bad arguments"),
        ("git|stdio|uvx,git|stdio|npx", "configured twice"),
    ],
)
def test_invalid_entries(raw: str, message: str) -> None:
    """Test malformed lists raise RemoteServerConfigError."""
    with pytest.raises(RemoteServerConfigError, match=re.escape(message)):
        parse_remote_servers(raw)
