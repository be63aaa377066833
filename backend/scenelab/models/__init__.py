"""Domain models."""

from scenelab.models.conversation import ConversationEntry, Role
from scenelab.models.export import AboutResponse, SceneExport
from scenelab.models.scene import FileSet, Scene

__all__ = [
    "AboutResponse",
    "ConversationEntry",
    "FileSet",
    "Role",
    "Scene",
    "SceneExport",
]
