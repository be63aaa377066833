"""ConversationEntry model: one immutable step of a scene's history."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping
from uuid import uuid4


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


def generate_entry_id() -> str:
    """Time-ordered entry id, unique even for entries appended in the same tick."""
    return f"msg_{time.time_ns()}_{uuid4().hex[:9]}"


@dataclass(frozen=True)
class ConversationEntry:
    """A prompt or explanation paired with a whole-scene file snapshot.

    For a user entry the snapshot holds the files before the edit, for an
    assistant entry the files after it. The snapshot is stored as a
    read-only view over a private copy.
    """

    role: Role
    content: str
    files_snapshot: Mapping[str, str]
    id: str = field(default_factory=generate_entry_id)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self):
        object.__setattr__(self, "role", Role(self.role))
        object.__setattr__(self, "files_snapshot", MappingProxyType(dict(self.files_snapshot)))

    @classmethod
    def user(cls, content: str, files: Mapping[str, str]) -> "ConversationEntry":
        return cls(role=Role.USER, content=content, files_snapshot=files)

    @classmethod
    def assistant(cls, content: str, files: Mapping[str, str]) -> "ConversationEntry":
        return cls(role=Role.ASSISTANT, content=content, files_snapshot=files)
