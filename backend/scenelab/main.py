"""FastAPI application entry point."""

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from scenelab import __version__
from scenelab.api.routes import realm, scenes
from scenelab.config import Settings, get_settings
from scenelab.exceptions import SceneLabError
from scenelab.logging_config import configure_logging
from scenelab.services.build_workspace import SharedDependencies
from scenelab.services.collaborator import LLMSceneCollaborator, SceneCollaborator
from scenelab.services.export_service import ExportService
from scenelab.services.orchestrator import ModificationOrchestrator
from scenelab.services.scene_build import ScenePipeline
from scenelab.services.scene_store import SceneStore

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    collaborator: SceneCollaborator | None = None,
    pipeline: ScenePipeline | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Build the application.

    Components are created in the lifespan so every app (and every test)
    gets its own store. ``collaborator`` and ``pipeline`` may be injected.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan handler."""
        # Startup
        if configure_logs:
            configure_logging(settings)

        # A missing dependency set must stop the process, not fail mid-build
        dependencies = SharedDependencies(settings)
        await asyncio.to_thread(dependencies.initialize)

        store = SceneStore()
        build_pipeline = pipeline or ScenePipeline(settings, dependencies)
        exports = ExportService(settings, store, build_pipeline)

        app.state.settings = settings
        app.state.dependencies = dependencies
        app.state.store = store
        app.state.exports = exports
        app.state.orchestrator = ModificationOrchestrator(
            settings,
            store,
            collaborator or LLMSceneCollaborator(settings),
            build_pipeline,
            exports,
        )
        logger.info(f"{settings.app_name} ready, serving scenes at {settings.public_base_url}")
        yield
        # Shutdown
        await exports.shutdown()

    app = FastAPI(
        title=settings.app_name,
        description="Versioned scene editing with AI modification, builds and content-addressed export",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(SceneLabError)
    async def scene_lab_error_handler(request: Request, exc: SceneLabError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    # Include routers
    app.include_router(scenes.router, prefix="/api/scenes", tags=["scenes"])
    app.include_router(realm.router, tags=["realm"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": settings.app_name,
            "version": __version__,
            "docs": "/docs",
        }

    return app


app = create_app()
