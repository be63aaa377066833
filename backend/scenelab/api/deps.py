"""Dependency injection for FastAPI routes.

Components are built once in the application lifespan and kept on
``app.state``; routes reach them through these aliases.
"""

from typing import Annotated

from fastapi import Depends, Request

from scenelab.services.export_service import ExportService
from scenelab.services.orchestrator import ModificationOrchestrator
from scenelab.services.scene_store import SceneStore


def get_store(request: Request) -> SceneStore:
    return request.app.state.store


def get_exports(request: Request) -> ExportService:
    return request.app.state.exports


def get_orchestrator(request: Request) -> ModificationOrchestrator:
    return request.app.state.orchestrator


# Type aliases for dependency injection
Store = Annotated[SceneStore, Depends(get_store)]
Exports = Annotated[ExportService, Depends(get_exports)]
Orchestrator = Annotated[ModificationOrchestrator, Depends(get_orchestrator)]
