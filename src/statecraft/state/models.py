from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from statecraft.serde import Serde


class ResourceStatus(StrEnum):
    """Persisted lifecycle states of a resource."""

    creating = "creating"
    created = "created"
    updating = "updating"
    updated = "updated"
    deleting = "deleting"
    deleted = "deleted"
    failed = "failed"

    @property
    def is_stable(self) -> bool:
        return self in (ResourceStatus.created, ResourceStatus.updated)


class ReplacedObject(BaseModel):
    """A superseded provider object still waiting to be deleted."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    props: Any = None
    output: Any = None


class ResourceRecord(BaseModel):
    """Persisted unit of state for one resource identity."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    fqn: str
    type: str
    status: ResourceStatus
    props: Any = None
    output: Any = None
    dependencies: list[str] = Field(default_factory=list)
    scope_path: list[str] = Field(default_factory=list)
    error: str | None = None
    replaced: list[ReplacedObject] = Field(default_factory=list)

    @property
    def prefix(self) -> str:
        return "/".join(self.scope_path)

    @property
    def id(self) -> str:
        prefix = self.prefix
        if prefix and self.fqn.startswith(prefix + "/"):
            return self.fqn[len(prefix) + 1 :]
        return self.fqn.rsplit("/", 1)[-1]

    def to_document(self, serde: Serde) -> dict[str, Any]:
        return {
            "fqn": self.fqn,
            "type": self.type,
            "status": self.status.value,
            "props": serde.encode(self.props),
            "output": serde.encode(self.output),
            "dependencies": list(self.dependencies),
            "scopePath": list(self.scope_path),
            "error": self.error,
            "replaced": [
                {"props": serde.encode(old.props), "output": serde.encode(old.output)}
                for old in self.replaced
            ],
        }

    @classmethod
    def from_document(cls, document: dict[str, Any], serde: Serde) -> ResourceRecord:
        return cls(
            fqn=document["fqn"],
            type=document["type"],
            status=ResourceStatus(document["status"]),
            props=serde.decode(document.get("props")),
            output=serde.decode(document.get("output")),
            dependencies=list(document.get("dependencies") or []),
            scope_path=list(document.get("scopePath") or []),
            error=document.get("error"),
            replaced=[
                ReplacedObject(
                    props=serde.decode(old.get("props")),
                    output=serde.decode(old.get("output")),
                )
                for old in document.get("replaced") or []
            ],
        )
