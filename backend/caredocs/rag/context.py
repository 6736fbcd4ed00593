"""
Contextual block appended to the assistant's system prompt.
"""

from __future__ import annotations

from collections.abc import Sequence

from caredocs.vectorstore.base import ChunkMatch

CONTEXT_HEADER = "Relevant information from your uploaded documents:"


def format_context(matches: Sequence[ChunkMatch]) -> str:
    """
    Render matches as:

        \\n\\nRelevant information from your uploaded documents:
        - <content> (similarity: 87.3%)
        - ...

    Empty string when there are no matches, so the result can always be
    concatenated onto a prompt.
    """
    if not matches:
        return ""
    lines = [f"- {m.content} (similarity: {m.similarity * 100:.1f}%)" for m in matches]
    return "\n\n" + CONTEXT_HEADER + "\n" + "\n".join(lines)


def used_rag(use_rag: bool, context: str) -> bool:
    return use_rag and len(context) > 0
