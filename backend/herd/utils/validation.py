from __future__ import annotations

from typing import Any

from ..game.errors import InvalidPayload


def validate_name(name: Any, max_length: int = 16) -> str:
    n = str(name or "").strip()
    if not n:
        raise InvalidPayload("name is required")
    if len(n) > max_length:
        raise InvalidPayload(f"name is longer than {max_length} characters")
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        raise InvalidPayload("name contains forbidden characters")
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            raise InvalidPayload("name contains control characters")
    return n


def validate_answer(text: Any, max_length: int = 64) -> str:
    # Blank answers are legal: they just never match anybody.
    if text is None:
        return ""
    if not isinstance(text, str):
        raise InvalidPayload("answer must be a string")
    if len(text) > max_length:
        raise InvalidPayload(f"answer is longer than {max_length} characters")
    return text


def validate_prompt(prompt: Any) -> str | None:
    if prompt is None:
        return None
    if not isinstance(prompt, str) or not prompt.strip():
        raise InvalidPayload("prompt must be a non-empty string")
    return prompt.strip()


def validate_decision(decision: Any) -> str:
    d = str(decision or "").strip().lower()
    if d not in ("continue", "finish"):
        raise InvalidPayload("decision must be 'continue' or 'finish'")
    return d
