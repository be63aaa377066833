"""In-memory scene store.

The store is the single source of truth for scenes and their conversation
history. It holds cached exports but knows nothing about how they are
produced. Every file mapping that crosses its boundary is copied.
"""

import asyncio
import logging
import time
from typing import Mapping
from uuid import uuid4

from scenelab.exceptions import (
    EntryNotFound,
    InvalidEntryId,
    SceneNotFound,
    TemplateNotFound,
)
from scenelab.models import ConversationEntry, FileSet, Scene, SceneExport
from scenelab.services.hashing import fileset_fingerprint
from scenelab.services.templates import DEFAULT_TEMPLATE, DEFAULT_TEMPLATE_ID

logger = logging.getLogger(__name__)


def generate_scene_id() -> str:
    return f"scene_{int(time.time() * 1000)}_{uuid4().hex[:9]}"


class SceneStore:
    """Owns scenes, templates and per-scene mutation locks."""

    def __init__(self, templates: Mapping[str, Mapping[str, str]] | None = None):
        self._scenes: dict[str, Scene] = {}
        self._templates: dict[str, FileSet] = {DEFAULT_TEMPLATE_ID: dict(DEFAULT_TEMPLATE)}
        self._locks: dict[str, asyncio.Lock] = {}
        for template_id, files in (templates or {}).items():
            self.register_template(template_id, files)

    # Templates

    def register_template(self, template_id: str, files: Mapping[str, str]) -> None:
        self._templates[template_id] = dict(files)

    def template_ids(self) -> list[str]:
        return sorted(self._templates)

    # Locking

    def lock(self, scene_id: str) -> asyncio.Lock:
        """Per-scene mutation lock.

        Callers performing read-modify-write cycles (build, AI modification)
        hold this for the whole cycle so a second request cannot commit on
        top of stale files. Locks exist only for live scenes.

        Raises:
            SceneNotFound: scene does not exist
        """
        self._require(scene_id)
        return self._locks[scene_id]

    # Internal helpers

    def _require(self, scene_id: str) -> Scene:
        scene = self._scenes.get(scene_id)
        if scene is None:
            raise SceneNotFound(scene_id)
        return scene

    def _require_entry(self, scene: Scene, entry_id: str) -> ConversationEntry:
        if not entry_id or not entry_id.strip():
            raise InvalidEntryId("Entry id is required")
        entry = scene.find_entry(entry_id)
        if entry is None:
            raise EntryNotFound(scene.id, entry_id)
        return entry

    @staticmethod
    def _invalidate_live(scene: Scene) -> None:
        scene.built_files = None
        scene.export = None
        scene.export_fingerprint = None

    # CRUD

    async def create_from_template(self, template_id: str, name: str) -> Scene:
        """Create a scene with a private copy of a template's files."""
        template = self._templates.get(template_id)
        if template is None:
            raise TemplateNotFound(template_id)

        scene = Scene(id=generate_scene_id(), name=name, files=dict(template))
        self._scenes[scene.id] = scene
        self._locks[scene.id] = asyncio.Lock()
        logger.info(f"Created scene {scene.id} from template {template_id}")
        return scene.copy()

    async def get(self, scene_id: str) -> Scene | None:
        scene = self._scenes.get(scene_id)
        return scene.copy() if scene else None

    async def get_or_raise(self, scene_id: str) -> Scene:
        return self._require(scene_id).copy()

    async def list_scenes(self) -> list[Scene]:
        return [scene.copy() for scene in self._scenes.values()]

    async def delete(self, scene_id: str) -> bool:
        """Delete a scene. Returns False if it did not exist."""
        removed = self._scenes.pop(scene_id, None)
        self._locks.pop(scene_id, None)
        if removed:
            logger.info(f"Deleted scene {scene_id}")
        return removed is not None

    async def update_files(self, scene_id: str, files: Mapping[str, str]) -> Scene:
        """Replace files wholesale; built files and the live export are dropped."""
        scene = self._require(scene_id)
        scene.files = dict(files)
        self._invalidate_live(scene)
        scene.touch()
        return scene.copy()

    # Conversation history

    async def append_conversation_entry(self, scene_id: str, entry: ConversationEntry) -> Scene:
        """Append an entry. No deduplication is performed."""
        scene = self._require(scene_id)
        scene.conversation.append(entry)
        scene.touch()
        return scene.copy()

    async def reset_conversation(self, scene_id: str) -> Scene:
        """Clear history. Files, built files and the live export are kept."""
        scene = self._require(scene_id)
        scene.conversation = []
        # Snapshot exports belong to entries that no longer exist
        scene.snapshot_exports = {}
        scene.touch()
        return scene.copy()

    async def get_snapshot(self, scene_id: str, entry_id: str) -> FileSet:
        scene = self._require(scene_id)
        entry = self._require_entry(scene, entry_id)
        return dict(entry.files_snapshot)

    async def revert_to_snapshot(self, scene_id: str, entry_id: str) -> Scene:
        """Make an entry's snapshot the current files.

        History is not truncated: reverting is a new forward edit, and later
        entries stay viewable and revertable.
        """
        scene = self._require(scene_id)
        entry = self._require_entry(scene, entry_id)
        scene.files = dict(entry.files_snapshot)
        self._invalidate_live(scene)
        scene.touch()
        logger.info(f"Reverted scene {scene_id} to entry {entry_id}")
        return scene.copy()

    async def commit_modification(
        self,
        scene_id: str,
        user_entry: ConversationEntry,
        assistant_entry: ConversationEntry,
        files: Mapping[str, str],
        built_files: Mapping[str, str] | None,
    ) -> Scene:
        """Record one modification request in a single step.

        Appends the user/assistant pair and makes ``files`` current, with
        ``built_files`` when the build succeeded.
        """
        scene = self._require(scene_id)
        scene.conversation.extend([user_entry, assistant_entry])
        scene.files = dict(files)
        self._invalidate_live(scene)
        if built_files is not None:
            scene.built_files = dict(built_files)
        scene.touch()
        return scene.copy()

    # Build and export caches

    async def set_built_files(
        self,
        scene_id: str,
        built_files: Mapping[str, str],
        source_fingerprint: str,
    ) -> bool:
        """Store built output if the scene's files are still the ones that were built."""
        scene = self._require(scene_id)
        if fileset_fingerprint(scene.files) != source_fingerprint:
            logger.info(f"Discarding stale build output for scene {scene_id}")
            return False
        scene.built_files = dict(built_files)
        scene.export = None
        scene.export_fingerprint = None
        scene.touch()
        return True

    async def set_export(self, scene_id: str, export: SceneExport, fingerprint: str) -> bool:
        """Cache a live export if it still matches the scene's current state.

        An export already cached for the same state wins, so an entity id
        handed out earlier stays fetchable.
        """
        scene = self._require(scene_id)
        if fileset_fingerprint(scene.files, scene.built_files) != fingerprint:
            logger.info(f"Discarding stale export {export.entity_id} for scene {scene_id}")
            return False
        if scene.export is not None and scene.export_fingerprint == fingerprint:
            logger.debug(f"Scene {scene_id} already exported as {scene.export.entity_id}")
            return False
        scene.export = export
        scene.export_fingerprint = fingerprint
        scene.touch()
        return True

    async def set_snapshot_export(self, scene_id: str, entry_id: str, export: SceneExport) -> bool:
        scene = self._require(scene_id)
        if scene.find_entry(entry_id) is None:
            return False
        scene.snapshot_exports[entry_id] = export
        scene.touch()
        return True
