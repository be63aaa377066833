"""Code-generation collaborator backed by an LLM API."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Protocol, Sequence

from scenelab.config import Settings
from scenelab.exceptions import CollaboratorError
from scenelab.models import ConversationEntry, FileSet
from scenelab.prompts import FIRST_REQUEST_PROMPT, FOLLOW_UP_REQUEST_PROMPT, SYSTEM_PROMPT
from scenelab.prompts.scene_modification import FILE_CONTEXT_TEMPLATE
from scenelab.services.response_parser import parse_collaborator_response

logger = logging.getLogger(__name__)


@dataclass
class CollaboratorResult:
    """Files changed by the collaborator (possibly partial) and why."""

    files: FileSet
    explanation: str


class SceneCollaborator(Protocol):
    """Anything that can propose file changes for a prompt."""

    async def generate_scene_modification(
        self,
        prompt: str,
        current_files: Mapping[str, str],
        history: Sequence[ConversationEntry],
    ) -> CollaboratorResult: ...


def build_messages(
    prompt: str,
    current_files: Mapping[str, str],
    history: Sequence[ConversationEntry],
) -> list[dict[str, str]]:
    """Build the chat transcript for a request.

    The first request carries every current file. Follow-ups replay the
    conversation instead, which already established the file context.
    """
    if not history:
        files_context = "\n\n".join(
            FILE_CONTEXT_TEMPLATE.format(path=path, content=content)
            for path, content in current_files.items()
        )
        return [
            {
                "role": "user",
                "content": FIRST_REQUEST_PROMPT.format(files_context=files_context, prompt=prompt),
            }
        ]

    messages = [{"role": entry.role.value, "content": entry.content} for entry in history]
    messages.append({"role": "user", "content": FOLLOW_UP_REQUEST_PROMPT.format(prompt=prompt)})
    return messages


class LLMSceneCollaborator:
    """Modifies scene code using the configured LLM provider."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._openai_client = None
        self._anthropic_client = None

    def _get_openai_client(self):
        """Lazy load OpenAI client."""
        if self._openai_client is None:
            from openai import OpenAI
            self._openai_client = OpenAI(
                api_key=self.settings.openai_api_key,
                timeout=self.settings.collaborator_timeout_seconds,
            )
        return self._openai_client

    def _get_anthropic_client(self):
        """Lazy load Anthropic client."""
        if self._anthropic_client is None:
            from anthropic import Anthropic
            self._anthropic_client = Anthropic(
                api_key=self.settings.anthropic_api_key,
                timeout=self.settings.collaborator_timeout_seconds,
            )
        return self._anthropic_client

    def _call_anthropic(self, messages: list[dict[str, str]]) -> str:
        """Call Anthropic API with a cacheable system prompt."""
        client = self._get_anthropic_client()

        response = client.messages.create(
            model=self.settings.llm_model,
            max_tokens=self.settings.llm_max_tokens,
            # Identical system block on every request keeps the prompt cache warm
            system=[{"type": "text", "text": SYSTEM_PROMPT, "cache_control": {"type": "ephemeral"}}],
            messages=messages,
        )

        usage = response.usage
        logger.info(
            f"Anthropic usage: input={usage.input_tokens} output={usage.output_tokens} "
            f"cache_write={getattr(usage, 'cache_creation_input_tokens', 0) or 0} "
            f"cache_read={getattr(usage, 'cache_read_input_tokens', 0) or 0}"
        )
        text_blocks = [block.text for block in response.content if block.type == "text"]
        return text_blocks[0] if text_blocks else ""

    def _call_openai(self, messages: list[dict[str, str]]) -> str:
        """Call OpenAI API."""
        client = self._get_openai_client()

        response = client.chat.completions.create(
            model=self.settings.llm_model,
            max_tokens=self.settings.llm_max_tokens,
            messages=[{"role": "system", "content": SYSTEM_PROMPT}, *messages],
            response_format={"type": "json_object"},
        )

        if response.usage:
            logger.info(
                f"OpenAI usage: input={response.usage.prompt_tokens} "
                f"output={response.usage.completion_tokens}"
            )
        return response.choices[0].message.content or ""

    def _call_llm(self, messages: list[dict[str, Any]]) -> str:
        """Call configured LLM provider."""
        provider = self.settings.llm_provider
        logger.info(f"Calling {provider} {self.settings.llm_model} with {len(messages)} messages...")

        if provider == "openai":
            return self._call_openai(messages)
        elif provider == "anthropic":
            return self._call_anthropic(messages)
        else:
            raise ValueError(f"Unknown LLM provider: {provider}")

    async def generate_scene_modification(
        self,
        prompt: str,
        current_files: Mapping[str, str],
        history: Sequence[ConversationEntry],
    ) -> CollaboratorResult:
        messages = build_messages(prompt, current_files, history)
        kind = "first" if not history else "follow-up"
        logger.info(f"Requesting {kind} scene modification ({len(current_files)} files in scene)")

        try:
            response = await asyncio.to_thread(self._call_llm, messages)
        except Exception as e:
            logger.error(f"AI generation error: {e}")
            raise CollaboratorError(f"AI generation failed: {e}") from e

        files, explanation = parse_collaborator_response(response)
        logger.info(f"Collaborator changed {len(files)} files")
        return CollaboratorResult(files=files, explanation=explanation)
