"""Secret-aware encoder/decoder for values persisted in state."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from statecraft import encryption
from statecraft.core.errors import DecryptionError, SerializationError
from statecraft.serde.types import Secret, Symbol, Tag

_SYMBOL_PATTERN = re.compile(r"^Symbol\((.*)\)$", re.DOTALL)
_PRIMITIVES = (str, int, float, bool, type(None))
_WIRE_TAGS = {tag.wire_key: tag for tag in Tag}


class Serde:
    """Converts value trees to JSON-compatible structures and back.

    Secrets are encrypted with ``passphrase`` on the way out and decrypted on
    the way in. Pass ``encrypt=False`` to :meth:`encode` to get a stable,
    comparable form (used for diffing props, never for persistence).
    """

    def __init__(self, passphrase: str | None = None) -> None:
        self._passphrase = passphrase

    def encode(self, value: Any, *, encrypt: bool = True) -> Any:
        if isinstance(value, _PRIMITIVES):
            return value
        tag = getattr(type(value), "__serde_tag__", None)
        if tag is not None:
            return self._encode_tagged(Tag(tag), value, encrypt)
        if isinstance(value, Mapping):
            return {
                self._encode_key(key): self.encode(item, encrypt=encrypt)
                for key, item in value.items()
            }
        if isinstance(value, (list, tuple)):
            return [self.encode(item, encrypt=encrypt) for item in value]
        raise SerializationError(
            f"Cannot serialize value of type {type(value).__name__}",
            {"type": type(value).__name__},
        )

    def decode(self, value: Any) -> Any:
        if isinstance(value, list):
            return [self.decode(item) for item in value]
        if isinstance(value, dict):
            if len(value) == 1:
                (key,) = value
                tag = _WIRE_TAGS.get(key)
                if tag is not None:
                    return self._decode_tagged(tag, value[key])
            return {self._decode_key(key): self.decode(item) for key, item in value.items()}
        return value

    def _encode_tagged(self, tag: Tag, value: Any, encrypt: bool) -> dict[str, Any]:
        if tag is Tag.secret:
            if not encrypt:
                return {tag.wire_key: value.unencrypted}
            if self._passphrase is None:
                raise SerializationError("Cannot encrypt a secret without a passphrase")
            return {tag.wire_key: encryption.encrypt(value.unencrypted, self._passphrase)}
        if tag is Tag.symbol:
            return {tag.wire_key: _symbol_to_string(value)}
        if tag is Tag.scope:
            return {tag.wire_key: None}
        raise SerializationError(f"Unhandled tag {tag}")

    def _decode_tagged(self, tag: Tag, payload: Any) -> Any:
        if tag is Tag.secret:
            if not isinstance(payload, str):
                raise DecryptionError("Secret payload must be a string")
            if self._passphrase is None:
                raise DecryptionError("Cannot decrypt a secret without a passphrase")
            return Secret(encryption.decrypt(payload, self._passphrase))
        if tag is Tag.symbol:
            symbol = _symbol_from_string(payload) if isinstance(payload, str) else None
            if symbol is None:
                raise SerializationError(f"Malformed symbol payload: {payload!r}")
            return symbol
        if tag is Tag.scope:
            # scopes are construction-time only and never rebuilt from state
            return None
        raise SerializationError(f"Unhandled tag {tag}")

    def _encode_key(self, key: Any) -> str:
        if isinstance(key, str):
            return key
        if isinstance(key, Symbol):
            return _symbol_to_string(key)
        raise SerializationError(
            f"Mapping keys must be strings or named symbols, got {type(key).__name__}",
            {"type": type(key).__name__},
        )

    @staticmethod
    def _decode_key(key: str) -> str | Symbol:
        return _symbol_from_string(key) or key


def _symbol_to_string(symbol: Symbol) -> str:
    if not symbol.is_named:
        raise SerializationError("Cannot serialize unique (unnamed) symbol")
    return f"Symbol({symbol.name})"


def _symbol_from_string(text: str) -> Symbol | None:
    match = _SYMBOL_PATTERN.match(text)
    if match is None:
        return None
    return Symbol(match.group(1))
