"""Value types that Serde encodes as tagged wrapper objects."""

from __future__ import annotations

from enum import StrEnum


class Tag(StrEnum):
    """Closed set of wrapper tags understood by the codec."""

    secret = "secret"
    symbol = "symbol"
    scope = "scope"

    @property
    def wire_key(self) -> str:
        return f"@{self.value}"


class Secret:
    """A string value that must never be persisted in clear text."""

    __serde_tag__ = Tag.secret
    __slots__ = ("unencrypted",)

    def __init__(self, unencrypted: str) -> None:
        if not isinstance(unencrypted, str):
            raise TypeError("Secret values must be strings")
        self.unencrypted = unencrypted

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Secret):
            return NotImplemented
        return self.unencrypted == other.unencrypted

    def __hash__(self) -> int:
        return hash((Secret, self.unencrypted))

    def __repr__(self) -> str:
        return "Secret(******)"


class Symbol:
    """A symbolic key or value.

    Named symbols compare equal by name and survive serialization; unnamed
    symbols are unique by identity and are rejected by the codec.
    """

    __serde_tag__ = Tag.symbol
    __slots__ = ("name",)

    def __init__(self, name: str | None = None) -> None:
        self.name = name

    @property
    def is_named(self) -> bool:
        return self.name is not None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Symbol):
            return NotImplemented
        if self.name is None or other.name is None:
            return self is other
        return self.name == other.name

    def __hash__(self) -> int:
        if self.name is None:
            return id(self)
        return hash((Symbol, self.name))

    def __str__(self) -> str:
        return f"Symbol({self.name})" if self.name is not None else "Symbol()"

    __repr__ = __str__
