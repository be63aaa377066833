"""Prompt for asking the collaborator to fix a failed build."""

BUILD_REPAIR_PROMPT = """The previous changes caused TypeScript build errors. Please fix them.

Build errors:
{build_errors}

Original request: {original_prompt}

Please fix ONLY the TypeScript errors while keeping the original intent of the changes."""
