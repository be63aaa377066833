"""Scene management, AI modification and history routes."""

import logging
from datetime import datetime

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, ConfigDict, Field

from scenelab.api.deps import Exports, Orchestrator, Store
from scenelab.exceptions import SceneNotFound
from scenelab.models import ConversationEntry, Scene

logger = logging.getLogger(__name__)

router = APIRouter()


class CreateSceneRequest(BaseModel):
    """Request to create a scene from a template."""

    template_id: str = Field("default", alias="templateId")
    name: str = "My Scene"

    model_config = ConfigDict(populate_by_name=True)


class UpdateSceneRequest(BaseModel):
    """Replace a scene's files wholesale."""

    files: dict[str, str]


class PromptRequest(BaseModel):
    """A user modification request."""

    prompt: str


class ConversationEntryResponse(BaseModel):
    id: str
    role: str
    content: str
    timestamp: datetime
    files_snapshot: dict[str, str] = Field(serialization_alias="filesSnapshot")

    @classmethod
    def from_entry(cls, entry: ConversationEntry) -> "ConversationEntryResponse":
        return cls(
            id=entry.id,
            role=entry.role.value,
            content=entry.content,
            timestamp=entry.timestamp,
            files_snapshot=dict(entry.files_snapshot),
        )


class SceneResponse(BaseModel):
    """Scene information response."""

    id: str
    name: str
    files: dict[str, str]
    built_files: dict[str, str] | None = Field(None, serialization_alias="builtFiles")
    conversation: list[ConversationEntryResponse]
    entity_id: str | None = Field(None, serialization_alias="entityId")
    created_at: datetime = Field(serialization_alias="createdAt")
    updated_at: datetime = Field(serialization_alias="updatedAt")

    @classmethod
    def from_scene(cls, scene: Scene) -> "SceneResponse":
        return cls(
            id=scene.id,
            name=scene.name,
            files=scene.files,
            built_files=scene.built_files,
            conversation=[ConversationEntryResponse.from_entry(e) for e in scene.conversation],
            entity_id=scene.export.entity_id if scene.export else None,
            created_at=scene.created_at,
            updated_at=scene.updated_at,
        )


class PromptResponse(BaseModel):
    scene: SceneResponse
    explanation: str
    build_retries: int = Field(serialization_alias="buildRetries")
    build_failed: bool = Field(False, serialization_alias="buildFailed")
    build_error: str | None = Field(None, serialization_alias="buildError")


class BuildResponse(BaseModel):
    success: bool
    message: str
    file_count: int = Field(serialization_alias="fileCount")


class SceneMessageResponse(BaseModel):
    scene: SceneResponse
    message: str


class SnapshotResponse(BaseModel):
    files: dict[str, str]


@router.post("", response_model=SceneResponse, response_model_by_alias=True)
async def create_scene(request: CreateSceneRequest, store: Store, exports: Exports) -> SceneResponse:
    """Create a scene from a template and start exporting it for preview."""
    scene = await store.create_from_template(request.template_id, request.name)
    exports.schedule_live_export(scene.id)
    return SceneResponse.from_scene(scene)


@router.get("", response_model=list[SceneResponse], response_model_by_alias=True)
async def list_scenes(store: Store) -> list[SceneResponse]:
    """List all scenes."""
    return [SceneResponse.from_scene(scene) for scene in await store.list_scenes()]


@router.get("/{scene_id}", response_model=SceneResponse, response_model_by_alias=True)
async def get_scene(scene_id: str, store: Store) -> SceneResponse:
    """Get a specific scene."""
    scene = await store.get(scene_id)
    if not scene:
        raise SceneNotFound(scene_id)
    return SceneResponse.from_scene(scene)


@router.put("/{scene_id}", response_model=SceneResponse, response_model_by_alias=True)
async def update_scene(scene_id: str, request: UpdateSceneRequest, store: Store) -> SceneResponse:
    """Replace a scene's files (e.g. after manual editing)."""
    async with store.lock(scene_id):
        scene = await store.update_files(scene_id, request.files)
    logger.info(f"Updated scene {scene_id}")
    return SceneResponse.from_scene(scene)


@router.delete("/{scene_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_scene(scene_id: str, store: Store) -> None:
    """Delete a scene."""
    if not await store.delete(scene_id):
        raise SceneNotFound(scene_id)


@router.post("/{scene_id}/build", response_model=BuildResponse, response_model_by_alias=True)
async def build_scene(scene_id: str, store: Store, exports: Exports) -> BuildResponse:
    """Compile the scene's current files and refresh its export."""
    async with store.lock(scene_id):
        built_files = await exports.build_scene(scene_id)
    exports.schedule_live_export(scene_id)
    return BuildResponse(
        success=True,
        message="Scene built successfully",
        file_count=len(built_files),
    )


@router.post("/{scene_id}/ai-prompt", response_model=PromptResponse, response_model_by_alias=True)
async def ai_prompt(scene_id: str, request: PromptRequest, orchestrator: Orchestrator) -> PromptResponse:
    """Modify a scene with the code-generation collaborator."""
    if not request.prompt.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Prompt is required",
        )

    result = await orchestrator.modify(scene_id, request.prompt)
    return PromptResponse(
        scene=SceneResponse.from_scene(result.scene),
        explanation=result.explanation,
        build_retries=result.build_retries,
        build_failed=result.build_failed,
        build_error=result.build_error,
    )


@router.post(
    "/{scene_id}/reset-conversation",
    response_model=SceneMessageResponse,
    response_model_by_alias=True,
)
async def reset_conversation(scene_id: str, store: Store) -> SceneMessageResponse:
    """Clear a scene's conversation history, keeping its files."""
    async with store.lock(scene_id):
        scene = await store.reset_conversation(scene_id)
    logger.info(f"Conversation reset for scene {scene_id}")
    return SceneMessageResponse(
        scene=SceneResponse.from_scene(scene),
        message="Conversation reset successfully",
    )


@router.get("/{scene_id}/snapshot/{entry_id}", response_model=SnapshotResponse)
async def get_snapshot(scene_id: str, entry_id: str, store: Store) -> SnapshotResponse:
    """Get the files as they were at a conversation entry."""
    files = await store.get_snapshot(scene_id, entry_id)
    return SnapshotResponse(files=files)


@router.post(
    "/{scene_id}/revert/{entry_id}",
    response_model=SceneMessageResponse,
    response_model_by_alias=True,
)
async def revert_snapshot(scene_id: str, entry_id: str, store: Store) -> SceneMessageResponse:
    """Make a conversation entry's files current again."""
    async with store.lock(scene_id):
        scene = await store.revert_to_snapshot(scene_id, entry_id)
    return SceneMessageResponse(
        scene=SceneResponse.from_scene(scene),
        message=f"Reverted to snapshot {entry_id}",
    )
