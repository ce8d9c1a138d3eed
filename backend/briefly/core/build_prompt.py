"""Prompt Assembly - pure builders for the grounded chat prompt.

Invariants:
    - Output is deterministic for the same inputs (no IO, no clock)
    - History is rendered oldest-first as "User:" / "Assistant:" lines
    - Retrieved passages are joined by a blank line, in retrieval order
    - The user's current input is always the last section

Design Decisions:
    - Single user turn carrying history + context: the model sees one grounded
      question instead of a replayed multi-turn chat (ADR: keeps retrieval context
      adjacent to the question it answers)
    - System instruction kept separate so the LLM client can send it as `system`
"""

from briefly.core.domain_types import HistoryMessage, RetrievedPassage

SYSTEM_PROMPT = (
    "You answer questions about a PDF document the user uploaded. "
    "Ground every answer in the provided context and conversation."
)

_INSTRUCTION = (
    "Use the following pieces of context (or previous conversation if needed) "
    "to answer the user's question in markdown format. If you don't know the "
    "answer, just say that you don't know, don't try to make up an answer."
)

_SEPARATOR = "----------------"


def format_history(history: list[HistoryMessage]) -> str:
    """Render prior turns as transcript lines."""
    lines = []
    for msg in history:
        speaker = "User" if msg.is_user_message else "Assistant"
        lines.append(f"{speaker}: {msg.text}\n")
    return "".join(lines)


def format_context(passages: list[RetrievedPassage]) -> str:
    return "\n\n".join(p.text for p in passages)


def build_user_prompt(
    message: str,
    passages: list[RetrievedPassage],
    history: list[HistoryMessage],
) -> str:
    """Combine instruction, history, retrieved context and the question."""
    return (
        f"{_INSTRUCTION}\n\n"
        f"PREVIOUS CONVERSATION:\n{format_history(history)}\n"
        f"{_SEPARATOR}\n\n"
        f"CONTEXT:\n{format_context(passages)}\n\n"
        f"{_SEPARATOR}\n\n"
        f"USER INPUT: {message}"
    )


def build_chat_messages(
    message: str,
    passages: list[RetrievedPassage],
    history: list[HistoryMessage],
) -> list[dict]:
    """Messages array for the completion API (single grounded user turn)."""
    return [{
        "role": "user",
        "content": build_user_prompt(message, passages, history),
    }]
