"""Business logic services."""

from scenelab.services.build_workspace import SharedDependencies
from scenelab.services.export_service import ExportService
from scenelab.services.orchestrator import ModificationOrchestrator
from scenelab.services.scene_build import BuildResult, ScenePipeline
from scenelab.services.scene_store import SceneStore

__all__ = [
    "BuildResult",
    "ExportService",
    "ModificationOrchestrator",
    "ScenePipeline",
    "SceneStore",
    "SharedDependencies",
]
