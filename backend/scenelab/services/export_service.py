"""Lazy, cached export of live scenes and historical snapshots."""

import asyncio
import logging

from scenelab.config import Settings
from scenelab.exceptions import SceneBuildError
from scenelab.models import Scene, SceneExport
from scenelab.services.hashing import fileset_fingerprint
from scenelab.services.scene_build import ScenePipeline
from scenelab.services.scene_export import export_scene, parse_descriptor
from scenelab.services.scene_store import SceneStore

logger = logging.getLogger(__name__)


class ExportService:
    """Produces exports on demand and caches them in the store.

    Live exports are keyed by a fingerprint of ``(files, built_files)``;
    snapshot exports by entry id, since snapshots never change.
    """

    def __init__(self, settings: Settings, store: SceneStore, pipeline: ScenePipeline):
        self.settings = settings
        self.store = store
        self.pipeline = pipeline
        self._background: set[asyncio.Task] = set()
        # One live export in flight per scene; later callers await it
        self._live_in_flight: dict[str, asyncio.Task] = {}

    async def build_scene(self, scene_id: str) -> dict[str, str]:
        """Build the scene's current files and store the output.

        Raises:
            SceneNotFound: scene does not exist
            MissingDescriptor: scene.json is absent
            InvalidDescriptor: scene.json is not a JSON object
            SceneBuildError: the build tool rejected the files
        """
        scene = await self.store.get_or_raise(scene_id)
        parse_descriptor(scene.files)
        source_fingerprint = fileset_fingerprint(scene.files)

        result = await self.pipeline.build(scene_id, scene.files)
        if not result.success:
            logger.error(f"Build failed for scene {scene_id}: {result.diagnostic}", extra={"scene_id": scene_id})
            raise SceneBuildError(scene_id, result.diagnostic)

        await self.store.set_built_files(scene_id, result.built_files, source_fingerprint)
        return result.built_files

    async def export_live(self, scene_id: str) -> SceneExport:
        """Export the scene's current built state, building first if needed.

        Concurrent callers for the same scene share one build and export.
        """
        while True:
            scene = await self.store.get_or_raise(scene_id)
            fingerprint = fileset_fingerprint(scene.files, scene.built_files)
            if scene.export is not None and scene.export_fingerprint == fingerprint:
                return scene.export

            pending = self._live_in_flight.get(scene_id)
            if pending is None or pending.done():
                break
            # The state may have moved on while it ran, so check the cache again
            await asyncio.shield(pending)

        task = asyncio.create_task(self._export_live(scene_id, scene, fingerprint))
        self._live_in_flight[scene_id] = task
        task.add_done_callback(lambda done: self._forget_live(scene_id, done))
        return await asyncio.shield(task)

    def _forget_live(self, scene_id: str, task: asyncio.Task) -> None:
        if self._live_in_flight.get(scene_id) is task:
            del self._live_in_flight[scene_id]

    async def _export_live(self, scene_id: str, scene: Scene, fingerprint: str) -> SceneExport:
        built_files = scene.built_files
        if built_files is None:
            logger.info(f"Scene {scene_id} has no build output, building before export")
            built_files = await self.build_scene(scene_id)
            fingerprint = fileset_fingerprint(scene.files, built_files)

        exported = await asyncio.to_thread(
            export_scene,
            scene_id,
            built_files,
            self.settings.scene_base_url(scene_id),
            self.settings.catalyst_url,
        )
        if await self.store.set_export(scene_id, exported, fingerprint):
            return exported

        current = await self.store.get_or_raise(scene_id)
        if current.export is not None and current.export_fingerprint == fingerprint:
            return current.export
        return exported

    async def export_snapshot(self, scene_id: str, entry_id: str) -> SceneExport:
        """Export a conversation entry's snapshot files."""
        scene = await self.store.get_or_raise(scene_id)
        cached = scene.snapshot_exports.get(entry_id)
        if cached is not None:
            return cached

        files = await self.store.get_snapshot(scene_id, entry_id)
        logger.info(f"Lazy-exporting snapshot {entry_id} of scene {scene_id}")
        exported = await asyncio.to_thread(
            export_scene,
            f"{scene_id}-{entry_id}",
            files,
            self.settings.snapshot_base_url(scene_id, entry_id),
            self.settings.catalyst_url,
        )
        await self.store.set_snapshot_export(scene_id, entry_id, exported)
        return exported

    def schedule_live_export(self, scene_id: str) -> asyncio.Task:
        """Export in the background; failures are logged, not raised."""
        task = asyncio.create_task(self._export_quietly(scene_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _export_quietly(self, scene_id: str) -> None:
        try:
            exported = await self.export_live(scene_id)
            logger.info(
                f"Background export of scene {scene_id} ready: {exported.entity_id}",
                extra={"scene_id": scene_id, "entity_id": exported.entity_id},
            )
        except Exception as e:
            logger.error(f"Failed to export scene {scene_id}: {e}", extra={"scene_id": scene_id})

    async def shutdown(self) -> None:
        """Cancel pending background and in-flight exports."""
        tasks = [*self._background, *self._live_in_flight.values()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
