"""Error taxonomy shared by the store, pipeline, exporter and orchestrator.

Every error carries a ``kind`` and an HTTP-equivalent ``status_code`` so the
API layer can surface it without knowing about individual subclasses.
"""

from typing import Any


class SceneLabError(Exception):
    """Base class for all domain errors."""

    kind = "error"
    status_code = 500

    def __init__(self, message: str, **details: Any):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message, "kind": self.kind, **self.details}


# Not found (404)

class NotFoundError(SceneLabError):
    kind = "not_found"
    status_code = 404


class SceneNotFound(NotFoundError):
    kind = "scene_not_found"

    def __init__(self, scene_id: str):
        super().__init__(f"Scene {scene_id} not found", scene_id=scene_id)


class EntryNotFound(NotFoundError):
    kind = "entry_not_found"

    def __init__(self, scene_id: str, entry_id: str):
        super().__init__(
            f"Entry {entry_id} not found in scene {scene_id}",
            scene_id=scene_id,
            entry_id=entry_id,
        )


class TemplateNotFound(NotFoundError):
    kind = "template_not_found"

    def __init__(self, template_id: str):
        super().__init__(f"Template {template_id} not found", template_id=template_id)


class ContentNotFound(NotFoundError):
    kind = "content_not_found"

    def __init__(self, content_hash: str):
        super().__init__(f"Content {content_hash} not found", hash=content_hash)


# Validation (400)

class ValidationError(SceneLabError):
    kind = "validation"
    status_code = 400


class MissingDescriptor(ValidationError):
    kind = "missing_descriptor"

    def __init__(self, message: str = "scene.json not found in scene files"):
        super().__init__(message)


class InvalidDescriptor(ValidationError):
    kind = "invalid_descriptor"


class InvalidEntryId(ValidationError):
    kind = "invalid_entry_id"


# Build (422)

class SceneBuildError(SceneLabError):
    """Build failed where built output was required outside the retry loop."""

    kind = "build_failed"
    status_code = 422

    def __init__(self, scene_id: str, diagnostic: str):
        super().__init__(
            f"Build failed for scene {scene_id}",
            scene_id=scene_id,
            diagnostic=diagnostic,
        )
        self.diagnostic = diagnostic


# Environment (500)

class BuildEnvironmentError(SceneLabError):
    kind = "build_environment"
    status_code = 500


# Collaborator (502 / 504)

class CollaboratorError(SceneLabError):
    kind = "collaborator_failed"
    status_code = 502


class CollaboratorTimeout(CollaboratorError):
    kind = "collaborator_timeout"
    status_code = 504
