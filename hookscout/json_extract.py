"""Defensive JSON extraction from free-form model output.

Models wrap JSON in prose, fence it in markdown, or get cut off mid-object
when they hit the output-token limit.  :func:`extract_json` tries, in order:

1. the first balanced ``{...}`` / ``[...]`` span (string-aware, so braces
   inside quoted values do not count),
2. the body of a fenced ```json block,
3. when a *repair_key* is given and present in the text: item-by-item
   salvage of that array (truncated responses only), then structural repair
   of the truncated object.

Every helper returns ``None`` (or an empty list) instead of raising.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Literal

log = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_MAX_REPAIR_ATTEMPTS = 50

Root = Literal["object", "array"]


def _delimiters(root: Root) -> tuple[str, str]:
    return ("[", "]") if root == "array" else ("{", "}")


def scan_balanced(text: str, open_ch: str = "{", close_ch: str = "}", start: int | None = None) -> str | None:
    """Return the first complete balanced span, or ``None``.

    Scanning begins at the first *open_ch* (or at *start*).  Quote state is
    tracked so delimiters inside strings are ignored; backslash escapes are
    only honoured inside strings.
    """
    begin = text.find(open_ch) if start is None else start
    if begin < 0:
        return None
    depth = 0
    in_string = False
    escaped = False
    for i in range(begin, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch == open_ch:
            depth += 1
        elif ch == close_ch:
            depth -= 1
            if depth == 0:
                return text[begin:i + 1]
    return None


def _loads(candidate: str | None) -> Any:
    if candidate is None:
        return None
    try:
        return json.loads(candidate)
    except (json.JSONDecodeError, ValueError):
        return None


def _matches_root(value: Any, root: Root) -> bool:
    return isinstance(value, list) if root == "array" else isinstance(value, dict)


# ---------------------------------------------------------------------------
# Truncation repair
# ---------------------------------------------------------------------------


def _close_structure(fragment: str) -> tuple[str, list[int]]:
    """Close an open string and all open containers of *fragment*.

    Returns the closed text plus the positions of structural commas, which
    the caller uses to cut back further when the result still fails to parse.
    """
    stack: list[str] = []
    commas: list[int] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(fragment):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append("}" if ch == "{" else "]")
        elif ch in "}]":
            if stack:
                stack.pop()
        elif ch == ",":
            commas.append(i)

    closed = fragment
    if in_string:
        if escaped:
            closed = closed[:-1]
        closed += '"'
    closed = closed.rstrip()
    if closed.endswith(","):
        closed = closed[:-1]
    if closed.endswith(":"):
        closed += " null"
    return closed + "".join(reversed(stack)), commas


def repair_truncated_json(fragment: str) -> Any:
    """Best-effort parse of a JSON document cut off at an arbitrary point.

    Closes the dangling string and containers; if that still does not parse
    (a half-written key or literal), cuts back to the previous structural
    comma and tries again.
    """
    text = (fragment or "").strip()
    for _ in range(_MAX_REPAIR_ATTEMPTS):
        if not text:
            return None
        closed, commas = _close_structure(text)
        value = _loads(closed)
        if value is not None:
            return value
        if not commas:
            return None
        text = text[:commas[-1]]
    return None


def salvage_array_items(text: str, key: str = "hooks") -> list[dict[str, Any]]:
    """Parse complete objects of the ``key`` array up to the first incomplete one."""
    if not text:
        return []
    key_pos = text.find(f'"{key}"')
    if key_pos < 0:
        return []
    bracket = text.find("[", key_pos)
    if bracket < 0:
        return []

    items: list[dict[str, Any]] = []
    pos = bracket + 1
    while pos < len(text):
        ch = text[pos]
        if ch in " \t\r\n,":
            pos += 1
            continue
        if ch != "{":
            break
        span = scan_balanced(text, "{", "}", start=pos)
        if span is None:
            break
        value = _loads(span)
        if isinstance(value, dict):
            items.append(value)
        pos += len(span)
    return items


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def extract_json(
    text: str | None,
    root: Root = "object",
    repair_key: str | None = None,
    truncated: bool = False,
) -> Any:
    """Pull one JSON value of the requested *root* shape out of *text*.

    Returns ``None`` when nothing usable is found.
    """
    if not text:
        return None
    open_ch, close_ch = _delimiters(root)

    value = _loads(scan_balanced(text, open_ch, close_ch))
    if _matches_root(value, root):
        return value

    fence = _FENCE_RE.search(text)
    if fence:
        value = _loads(fence.group(1).strip())
        if _matches_root(value, root):
            log.debug("Recovered JSON %s from fenced block", root)
            return value

    if repair_key and f'"{repair_key}"' in text:
        if truncated:
            items = salvage_array_items(text, repair_key)
            if items:
                log.info("Salvaged %d complete %s item(s) from truncated output", len(items), repair_key)
                return {repair_key: items}
        start = text.find(open_ch)
        if start >= 0:
            value = repair_truncated_json(text[start:])
            if _matches_root(value, root):
                log.info("Repaired truncated JSON %s (%d chars)", root, len(text))
                return value

    log.debug("No JSON %s found in %d chars of output", root, len(text))
    return None
