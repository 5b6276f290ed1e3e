"""Deterministic iptables chain names, rule comments and plugin build strings."""

from __future__ import annotations

import hashlib

MAX_CHAIN_LENGTH = 28
CHAIN_PREFIX = "CNI-"
MAX_HASH_LEN = hashlib.sha512().digest_size * 2

BUILD_VERSION = "version unknown"


def format_hash_with_prefix(length: int, prefix: str, to_hash: str) -> str:
    """Return a string of ``length`` characters: ``prefix`` followed by a SHA-512 hex digest."""
    if len(prefix) >= length or length > MAX_HASH_LEN:
        raise ValueError("invalid length")
    digest = hashlib.sha512(to_hash.encode()).hexdigest()
    return (prefix + digest)[:length]


def format_chain_name_with_prefix(name: str, id: str, prefix: str) -> str:
    """Return a chain name of fixed length with a custom prefix after the common one."""
    return format_hash_with_prefix(MAX_CHAIN_LENGTH, CHAIN_PREFIX + prefix, name + id)


def format_chain_name(name: str, id: str) -> str:
    """Return a chain name of exactly MAX_CHAIN_LENGTH characters."""
    return format_chain_name_with_prefix(name, id, "")


def _quote(text: str) -> str:
    escapes = {"\\": "\\\\", '"': '\\"', "\n": "\\n", "\t": "\\t", "\r": "\\r"}
    out = []
    for ch in text:
        if ch in escapes:
            out.append(escapes[ch])
        elif ch.isprintable():
            out.append(ch)
        elif ord(ch) < 0x100:
            out.append(f"\\x{ord(ch):02x}")
        elif ord(ch) < 0x10000:
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(f"\\U{ord(ch):08x}")
    return '"' + "".join(out) + '"'


def format_comment(name: str, id: str) -> str:
    """Return a rule comment identifying the network and container."""
    return f"name: {_quote(name)} id: {_quote(id)}"


def build_string(plugin_name: str) -> str:
    """Return the version banner of a plugin."""
    return f"CNI {plugin_name} plugin {BUILD_VERSION}"