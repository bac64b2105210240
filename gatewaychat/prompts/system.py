"""System prompt builder."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Sequence

logger = logging.getLogger(__name__)

WorkspaceFile = tuple[str, int]
WorkspaceLister = Callable[[str], Awaitable[Sequence[WorkspaceFile]]]


def build_system_prompt(
    user_prompt: str = "",
    include_formatting_guide: bool = True,
    workspace_files: Sequence[WorkspaceFile] | None = None,
    extra_sections: list[str] | None = None,
) -> str:
    """
    Build the system message content for a turn.

    The formatting guide is only added to a non-blank user prompt.  Returns an
    empty string when there is nothing to say, in which case no system
    message is sent.
    """
    prompt = ""
    if user_prompt and user_prompt.strip():
        prompt = user_prompt
        if include_formatting_guide:
            prompt += FORMATTING_GUIDE

    if workspace_files:
        file_list = "\n".join(f"- {name} ({size} bytes)" for name, size in workspace_files)
        prompt += f"\n\nCurrent Workspace Files:\n{file_list}"

    if extra_sections:
        prompt = "\n\n".join([prompt, *extra_sections]) if prompt else "\n\n".join(extra_sections)

    return prompt.strip()


async def list_workspace_files(
    lister: WorkspaceLister | None,
    conversation_id: str | None,
) -> list[WorkspaceFile]:
    """Ask *lister* for the conversation's files; failures yield an empty list."""
    if lister is None or not conversation_id:
        return []
    try:
        return list(await lister(conversation_id))
    except Exception:
        logger.warning("Listing workspace files for %s failed", conversation_id, exc_info=True)
        return []


FORMATTING_GUIDE = """

When user asks for a diagram, make it in a mermaid diagram format the UI can render it automatically. Always ensure to style the diagram in a modern and professional way. with a color scheme that is easy to read and visually appealing.

DO NOT generate any mermaid diagram that is not requested by the user.

To provide a title for a code block, use the syntax ```language:filename.

for example:
```mermaid:flowchart.mmd
graph TD;
    A-->B;
    A-->C;
    B-->D;
    C-->D;
```

```python:index.py
print("hello world")
```

"""
