"""Pluggable persistence of resource records."""

from statecraft.state.base import (
    StateBackend,
    format_key,
    format_prefix,
    parse_key,
    storage_path,
)
from statecraft.state.factory import create_backend, create_state_store
from statecraft.state.filesystem import FileSystemStateBackend
from statecraft.state.memory import MemoryStateBackend
from statecraft.state.models import ReplacedObject, ResourceRecord, ResourceStatus
from statecraft.state.remote import RemoteStateBackend
from statecraft.state.sqlite import SqliteStateBackend
from statecraft.state.store import StateStore

__all__ = [
    "StateBackend",
    "StateStore",
    "ReplacedObject",
    "ResourceRecord",
    "ResourceStatus",
    "MemoryStateBackend",
    "FileSystemStateBackend",
    "SqliteStateBackend",
    "RemoteStateBackend",
    "create_backend",
    "create_state_store",
    "format_key",
    "format_prefix",
    "parse_key",
    "storage_path",
]
