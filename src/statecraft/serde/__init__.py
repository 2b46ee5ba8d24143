"""Secret-aware serialization of resource props and outputs."""

from statecraft.serde.codec import Serde
from statecraft.serde.types import Secret, Symbol, Tag

__all__ = ["Serde", "Secret", "Symbol", "Tag"]
