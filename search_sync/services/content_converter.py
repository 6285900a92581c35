"""TipTap JSON to plain text extraction for search indexing.

Notes, docs, missions, step text and "Text Long" custom fields are stored
as ProseMirror JSON (TipTap's internal format). Search documents only need
their text, so this module flattens a node tree into a single string.

Rules:
  - Text leaves are concatenated depth-first in document order with no
    separator; callers join whole fields with spaces afterwards.
  - A node with a non-empty string "text" is a leaf; its "content" is not
    visited.
  - A raw string is returned unchanged (already-flattened legacy data).
  - A list is treated as a "content" array.
  - None, numbers and malformed structures yield "". Nothing here raises.
"""

import json
from typing import Any


# -- Plain Text Extraction -----------------------------------------------------


def extract_text_from_node(node: Any) -> str:
    """Flatten a TipTap node tree into plain text.

    Args:
        node: TipTap node dict, list of nodes, raw string, or None.

    Returns:
        Concatenated text of all leaves. Empty string for invalid input.
    """
    if node is None:
        return ""
    if isinstance(node, str):
        return node

    parts: list[str] = []
    # Explicit stack so arbitrarily deep documents cannot hit the recursion limit
    stack: list[Any] = [node]
    while stack:
        current = stack.pop()
        if isinstance(current, list):
            stack.extend(reversed(current))
            continue
        if not isinstance(current, dict):
            continue

        text = current.get("text")
        if isinstance(text, str) and text:
            parts.append(text)
            continue

        content = current.get("content")
        if isinstance(content, list):
            stack.extend(reversed(content))

    return "".join(parts)


def parse_rich_text(value: Any) -> Any:
    """Decode a JSON-encoded rich text value.

    Raises ValueError (json.JSONDecodeError) when value is a string that is
    not valid JSON; non-string values are returned unchanged.
    """
    if isinstance(value, (str, bytes, bytearray)):
        return json.loads(value)
    return value


def extract_step_text(value: Any) -> str:
    """Extract text from a stored rich text field (steps, notes, docs).

    These columns may hold a JSON-encoded string or an already decoded tree.
    A string that fails to parse is returned as-is.
    """
    if value is None or value == "":
        return ""
    try:
        parsed = parse_rich_text(value)
    except ValueError:
        return value if isinstance(value, str) else ""
    if isinstance(parsed, (dict, list)):
        return extract_text_from_node(parsed)
    # JSON scalars ("42", "true", "\"quoted\"") are plain text, not documents
    return value if isinstance(value, str) else str(parsed)
