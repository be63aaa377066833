"""Scene model: the versioned unit of source files plus its history."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from scenelab.models.conversation import ConversationEntry
from scenelab.models.export import SceneExport

# Logical file path -> text content
FileSet = dict[str, str]


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Scene:
    """A mutable scene as held by the store.

    ``built_files`` is present only after a successful build of the current
    ``files``. ``export`` is the cached live export; ``export_fingerprint``
    records which ``(files, built_files)`` state it was computed from.
    """

    id: str
    name: str
    files: FileSet
    built_files: FileSet | None = None
    conversation: list[ConversationEntry] = field(default_factory=list)
    export: SceneExport | None = None
    export_fingerprint: str | None = None
    snapshot_exports: dict[str, SceneExport] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def touch(self) -> None:
        self.updated_at = _now()

    def find_entry(self, entry_id: str) -> ConversationEntry | None:
        return next((e for e in self.conversation if e.id == entry_id), None)

    def copy(self) -> "Scene":
        """Copy with private file mappings so callers cannot mutate store state.

        Entries are immutable and exports are derived, so both are shared.
        """
        return Scene(
            id=self.id,
            name=self.name,
            files=dict(self.files),
            built_files=dict(self.built_files) if self.built_files is not None else None,
            conversation=list(self.conversation),
            export=self.export,
            export_fingerprint=self.export_fingerprint,
            snapshot_exports=dict(self.snapshot_exports),
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
