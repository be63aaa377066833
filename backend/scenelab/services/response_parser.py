"""Parse the collaborator's JSON reply into files and an explanation."""

import json
import re

from scenelab.exceptions import CollaboratorError
from scenelab.models import FileSet

DEFAULT_EXPLANATION = "Code modified successfully"

_FENCED_JSON = re.compile(r"```json\s*\n(.*?)\n\s*```", re.DOTALL)
_BARE_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json(response: str) -> str:
    """Pull the JSON document out of an LLM reply.

    Prefers a ```json fenced block, falls back to the outermost {...}.
    """
    fenced = _FENCED_JSON.search(response)
    if fenced:
        return fenced.group(1)
    bare = _BARE_OBJECT.search(response)
    if bare:
        return bare.group(0)
    raise CollaboratorError("Could not parse JSON from AI response")


def parse_collaborator_response(response: str) -> tuple[FileSet, str]:
    """Return ``(files, explanation)`` from a reply.

    Missing ``files`` means no changes; missing ``explanation`` gets a
    default sentence.
    """
    try:
        data = json.loads(extract_json(response))
    except json.JSONDecodeError as e:
        raise CollaboratorError(f"AI response is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise CollaboratorError("AI response must be a JSON object")

    files = data.get("files") or {}
    if not isinstance(files, dict) or not all(
        isinstance(path, str) and isinstance(content, str) for path, content in files.items()
    ):
        raise CollaboratorError('AI response "files" must map paths to file contents')

    explanation = data.get("explanation") or DEFAULT_EXPLANATION
    return dict(files), str(explanation)
