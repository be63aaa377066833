"""LLM prompts for scene modification."""

from scenelab.prompts.build_repair import BUILD_REPAIR_PROMPT
from scenelab.prompts.scene_modification import (
    FIRST_REQUEST_PROMPT,
    FOLLOW_UP_REQUEST_PROMPT,
    SYSTEM_PROMPT,
)

__all__ = [
    "BUILD_REPAIR_PROMPT",
    "FIRST_REQUEST_PROMPT",
    "FOLLOW_UP_REQUEST_PROMPT",
    "SYSTEM_PROMPT",
]
