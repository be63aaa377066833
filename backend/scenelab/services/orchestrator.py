"""Build-validate-retry orchestration for one modification request.

A request moves through REQUESTING -> MERGING -> BUILDING and then ends in
COMMITTED_SUCCESS, loops through RETRY back to REQUESTING with the build
errors fed back to the collaborator, or ends in COMMITTED_WITH_BUILD_ERROR
once retries are exhausted. Only the terminal states write to the store,
and they append exactly one user and one assistant entry.
"""

import asyncio
import dataclasses
import logging
from dataclasses import dataclass
from enum import Enum

from scenelab.config import Settings
from scenelab.exceptions import CollaboratorTimeout
from scenelab.models import ConversationEntry, FileSet, Scene
from scenelab.prompts import BUILD_REPAIR_PROMPT
from scenelab.services.collaborator import CollaboratorResult, SceneCollaborator
from scenelab.services.export_service import ExportService
from scenelab.services.scene_build import BuildResult, ScenePipeline
from scenelab.services.scene_store import SceneStore

logger = logging.getLogger(__name__)

BUILD_FAILURE_WARNING = "⚠️ Warning: The changes have TypeScript errors and may not build correctly."


class Phase(str, Enum):
    REQUESTING = "requesting"
    MERGING = "merging"
    BUILDING = "building"
    RETRY = "retry"
    COMMITTED_SUCCESS = "committed_success"
    COMMITTED_WITH_BUILD_ERROR = "committed_with_build_error"


TERMINAL_PHASES = {Phase.COMMITTED_SUCCESS, Phase.COMMITTED_WITH_BUILD_ERROR}


@dataclass(frozen=True)
class ModificationState:
    """Where a modification request is in the retry loop."""

    phase: Phase
    original_prompt: str
    prompt: str
    retry_count: int = 0
    max_retries: int = 2
    last_error: str | None = None

    @classmethod
    def start(cls, prompt: str, max_retries: int) -> "ModificationState":
        return cls(
            phase=Phase.REQUESTING,
            original_prompt=prompt,
            prompt=prompt,
            max_retries=max_retries,
        )

    @property
    def attempt(self) -> int:
        return self.retry_count + 1

    @property
    def is_terminal(self) -> bool:
        return self.phase in TERMINAL_PHASES


def build_retry_prompt(build_errors: str, original_prompt: str) -> str:
    return BUILD_REPAIR_PROMPT.format(build_errors=build_errors, original_prompt=original_prompt)


def transition(state: ModificationState, build_result: BuildResult | None = None) -> ModificationState:
    """Pure state transition. ``build_result`` is required leaving BUILDING."""
    if state.phase == Phase.REQUESTING:
        return dataclasses.replace(state, phase=Phase.MERGING)

    if state.phase == Phase.MERGING:
        return dataclasses.replace(state, phase=Phase.BUILDING)

    if state.phase == Phase.BUILDING:
        if build_result is None:
            raise ValueError("A build result is required to leave the building phase")
        if build_result.success:
            return dataclasses.replace(state, phase=Phase.COMMITTED_SUCCESS, last_error=None)
        if state.retry_count < state.max_retries:
            return dataclasses.replace(state, phase=Phase.RETRY, last_error=build_result.diagnostic)
        return dataclasses.replace(
            state, phase=Phase.COMMITTED_WITH_BUILD_ERROR, last_error=build_result.diagnostic
        )

    if state.phase == Phase.RETRY:
        return dataclasses.replace(
            state,
            phase=Phase.REQUESTING,
            prompt=build_retry_prompt(state.last_error or "", state.original_prompt),
            retry_count=state.retry_count + 1,
        )

    raise ValueError(f"No transition out of terminal phase {state.phase.value}")


def merge_files(current: FileSet, changes: FileSet) -> FileSet:
    """Overlay changed files on the current set; untouched files are kept."""
    return {**current, **changes}


@dataclass
class ModificationResult:
    """What the caller gets back after a request reaches a terminal state."""

    scene: Scene
    explanation: str
    build_retries: int
    build_failed: bool = False
    build_error: str | None = None


class ModificationOrchestrator:
    """Drives collaborator call -> merge -> build -> retry to completion."""

    def __init__(
        self,
        settings: Settings,
        store: SceneStore,
        collaborator: SceneCollaborator,
        pipeline: ScenePipeline,
        exports: ExportService | None = None,
    ):
        self.store = store
        self.collaborator = collaborator
        self.pipeline = pipeline
        self.exports = exports
        self.max_retries = settings.max_build_retries
        self.collaborator_timeout = settings.collaborator_timeout_seconds

    async def modify(self, scene_id: str, prompt: str) -> ModificationResult:
        """Apply a user request to a scene.

        Raises:
            SceneNotFound: scene does not exist
            CollaboratorError: the collaborator failed; nothing is committed
            BuildEnvironmentError: the build environment is broken
        """
        async with self.store.lock(scene_id):
            scene = await self.store.get_or_raise(scene_id)
            logger.info(f"AI prompt for scene {scene_id}: {prompt!r}")

            state = ModificationState.start(prompt, self.max_retries)
            result: CollaboratorResult | None = None
            merged: FileSet = scene.files
            build: BuildResult | None = None

            while not state.is_terminal:
                if state.phase == Phase.REQUESTING:
                    result = await self._request(state, scene)
                    state = transition(state)
                elif state.phase == Phase.MERGING:
                    merged = merge_files(scene.files, result.files)
                    state = transition(state)
                elif state.phase == Phase.BUILDING:
                    logger.info(
                        f"Building scene {scene_id} "
                        f"(attempt {state.attempt}/{state.max_retries + 1})"
                    )
                    build = await self.pipeline.build(scene_id, merged)
                    state = transition(state, build)
                    if not build.success:
                        logger.warning(
                            f"Build failed for scene {scene_id} "
                            f"(attempt {state.attempt}): {build.diagnostic}",
                            extra={"scene_id": scene_id, "attempt": state.attempt},
                        )
                else:
                    state = transition(state)
                    logger.info(
                        f"Retrying scene {scene_id} with error feedback "
                        f"(attempt {state.attempt}/{state.max_retries + 1})"
                    )

            return await self._commit(scene, state, result, merged, build)

    async def _request(self, state: ModificationState, scene: Scene) -> CollaboratorResult:
        try:
            return await asyncio.wait_for(
                self.collaborator.generate_scene_modification(
                    state.prompt, dict(scene.files), list(scene.conversation)
                ),
                timeout=self.collaborator_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Collaborator timed out after {self.collaborator_timeout}s for scene {scene.id}")
            raise CollaboratorTimeout(
                f"Collaborator did not answer within {self.collaborator_timeout} seconds"
            ) from e

    async def _commit(
        self,
        scene: Scene,
        state: ModificationState,
        result: CollaboratorResult,
        merged: FileSet,
        build: BuildResult,
    ) -> ModificationResult:
        succeeded = state.phase == Phase.COMMITTED_SUCCESS

        # The user entry records the original request, never a repair prompt
        user_entry = ConversationEntry.user(state.original_prompt, scene.files)
        assistant_content = result.explanation
        if not succeeded:
            assistant_content = f"{result.explanation}\n\n{BUILD_FAILURE_WARNING}"
        assistant_entry = ConversationEntry.assistant(assistant_content, merged)

        updated = await self.store.commit_modification(
            scene.id,
            user_entry,
            assistant_entry,
            merged,
            build.built_files if succeeded else None,
        )

        if succeeded:
            logger.info(
                f"AI successfully modified scene {scene.id} after {state.retry_count} retries",
                extra={"scene_id": scene.id, "retries": state.retry_count},
            )
            if self.exports is not None:
                self.exports.schedule_live_export(scene.id)
            return ModificationResult(
                scene=updated,
                explanation=result.explanation,
                build_retries=state.retry_count,
            )

        logger.error(
            f"Max retries reached for scene {scene.id}, saving files with build errors",
            extra={"scene_id": scene.id, "retries": state.retry_count},
        )
        return ModificationResult(
            scene=updated,
            explanation=(
                f"{result.explanation}\n\n⚠️ Warning: Build failed after "
                f"{state.retry_count} retries. The code has TypeScript errors."
            ),
            build_retries=state.retry_count,
            build_failed=True,
            build_error=state.last_error,
        )
