"""
Reply normalization for the external agent.

The agent's reply shape is not stable. Depending on the workflow behind the
webhook it answers with a bare string, a list of `{"cleanText": ...}` objects,
an object with `text`, or an object with `message`. This module resolves any
of them to one display string.

Resolution order (first match wins):
1) top-level string
2) non-empty list whose first element has `cleanText`
3) object with `text`
4) object with `message`
5) anything else: the JSON-serialized structure

`normalize` is pure and total: any JSON value yields a string.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, List, Sequence, Tuple, Union


@dataclass(frozen=True)
class Text:
    value: str

    def display_text(self) -> str:
        return self.value


@dataclass(frozen=True)
class ArrayOfCleanText:
    """Every `cleanText` found in the list; the first element always has one."""

    values: Tuple[str, ...]

    def display_text(self) -> str:
        return self.values[0]


@dataclass(frozen=True)
class ObjectWithText:
    value: str

    def display_text(self) -> str:
        return self.value


@dataclass(frozen=True)
class ObjectWithMessage:
    value: str

    def display_text(self) -> str:
        return self.value


@dataclass(frozen=True)
class Unrecognized:
    raw: Any

    def display_text(self) -> str:
        return to_json_text(self.raw)


RelayReply = Union[Text, ArrayOfCleanText, ObjectWithText, ObjectWithMessage, Unrecognized]


def to_json_text(value: Any) -> str:
    """Compact JSON text, matching what a browser's JSON.stringify would show."""
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)


def _field_text(value: Any) -> str:
    return value if isinstance(value, str) else to_json_text(value)


def _has_field(reply: Any, name: str) -> bool:
    return isinstance(reply, dict) and reply.get(name) is not None


def _is_clean_text_list(reply: Any) -> bool:
    return isinstance(reply, list) and len(reply) > 0 and _has_field(reply[0], "cleanText")


def _clean_texts(reply: List[Any]) -> ArrayOfCleanText:
    return ArrayOfCleanText(
        values=tuple(_field_text(item["cleanText"]) for item in reply if _has_field(item, "cleanText"))
    )


_SHAPES: Sequence[Tuple[Callable[[Any], bool], Callable[[Any], RelayReply]]] = (
    (lambda r: isinstance(r, str), Text),
    (_is_clean_text_list, _clean_texts),
    (lambda r: _has_field(r, "text"), lambda r: ObjectWithText(_field_text(r["text"]))),
    (lambda r: _has_field(r, "message"), lambda r: ObjectWithMessage(_field_text(r["message"]))),
)


def classify_reply(reply: Any) -> RelayReply:
    """Select exactly one reply variant by the fixed resolution order."""
    for matches, build in _SHAPES:
        if matches(reply):
            return build(reply)
    return Unrecognized(reply)


def normalize(reply: Any) -> str:
    """Resolve a structured agent reply to its display text. Never raises for JSON input."""
    return classify_reply(reply).display_text()
