"""Pull a JSON object out of free-form LLM output."""

from __future__ import annotations

import re

_FENCED_JSON = re.compile(r"```json\s*(.*?)\s*```", re.DOTALL)


def extract_json(text: str) -> str:
    """Return the JSON text embedded in ``text``.

    Prefers a ```json fenced block; otherwise returns the first balanced
    ``{...}`` object, skipping braces inside string literals. Falls back to the
    stripped input so the caller's parser produces the error.
    """
    trimmed = text.strip()

    match = _FENCED_JSON.search(trimmed)
    if match:
        return match.group(1).strip()

    first = trimmed.find("{")
    if first == -1:
        return trimmed

    depth = 0
    in_string = False
    escape = False
    start: int | None = None

    for i in range(first, len(trimmed)):
        char = trimmed[i]

        if in_string:
            if escape:
                escape = False
            elif char == "\\":
                escape = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            if depth == 0:
                start = i
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0 and start is not None:
                return trimmed[start : i + 1]

    return trimmed
