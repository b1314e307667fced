"""Dotted-path lookups into event payloads.

`PathExpression("lead.status").resolve(payload)` walks mappings (and sequences,
for integer segments) one segment at a time. Any segment that cannot be
followed yields `MISSING` rather than raising. A present value of `None` is
returned as `None`; `MISSING` only means "the path does not exist".
"""

import re
from collections.abc import Mapping, Sequence
from typing import Any


class _Missing:
    """Sentinel for an absent payload path."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()

_TEMPLATE_VAR_RE = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


class PathExpression:
    """A parsed dotted path such as `appointment.lead.phone`."""

    __slots__ = ("raw", "segments")

    def __init__(self, raw: str):
        if not isinstance(raw, str) or not raw.strip():
            raise ValueError("Path expression must be a non-empty string")
        self.raw = raw.strip()
        self.segments = tuple(self.raw.split("."))

    def resolve(self, payload: Any) -> Any:
        current = payload
        for segment in self.segments:
            if current is None or current is MISSING:
                return MISSING
            if isinstance(current, Mapping):
                if segment not in current:
                    return MISSING
                current = current[segment]
            elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
                if not segment.lstrip("-").isdigit():
                    return MISSING
                index = int(segment)
                if not -len(current) <= index < len(current):
                    return MISSING
                current = current[index]
            else:
                return MISSING
        return current

    def __eq__(self, other: object) -> bool:
        return isinstance(other, PathExpression) and other.raw == self.raw

    def __hash__(self) -> int:
        return hash(self.raw)

    def __repr__(self) -> str:
        return f"PathExpression({self.raw!r})"


def resolve_path(payload: Any, path: str) -> Any:
    return PathExpression(path).resolve(payload)


def extract_template_variables(template: str, payload: Any) -> dict[str, Any]:
    """Map every `{{path}}` placeholder in `template` to its payload value (None if absent)."""
    variables: dict[str, Any] = {}
    for match in _TEMPLATE_VAR_RE.finditer(template or ""):
        path = match.group(1)
        value = resolve_path(payload, path)
        variables[path] = None if value is MISSING else value
    return variables


def render_template(template: str, payload: Any) -> str:
    """Substitute `{{path}}` placeholders; absent or null values render as an empty string."""

    def _substitute(match: "re.Match[str]") -> str:
        value = resolve_path(payload, match.group(1))
        if value is MISSING or value is None:
            return ""
        return str(value)

    return _TEMPLATE_VAR_RE.sub(_substitute, template or "")
