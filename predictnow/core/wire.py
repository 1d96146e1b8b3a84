"""Base model shared by every value that crosses the PredictNow wire.

Each wire model can be built as a *null variant*: an instance that carries a
diagnostic message instead of data. Decoding never raises for wire models;
malformed or sentinel payloads come back as null variants.
"""
from __future__ import annotations

import json
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, PrivateAttr, ValidationError

# Textual payloads the service returns in place of an object.
SENTINEL_PAYLOADS = frozenset({"None", "Expected object or value"})

W = TypeVar("W", bound="WireModel")


def unwrap_payload(raw: Any) -> str:
    """Return the payload as text, removing one level of JSON string quoting."""
    if isinstance(raw, (bytes, bytearray)):
        text = raw.decode("utf-8", errors="replace")
    else:
        text = str(raw)
    stripped = text.strip()
    if len(stripped) >= 2 and stripped[0] == '"' and stripped[-1] == '"':
        try:
            inner = json.loads(stripped)
        except ValueError:
            return stripped
        if isinstance(inner, str):
            return inner.strip()
    return stripped


def as_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class WireModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        extra="ignore",
        protected_namespaces=(),
    )

    _diagnostic: str | None = PrivateAttr(default=None)

    @classmethod
    def null(cls: type[W], message: str = "") -> W:
        result = cls()
        result._diagnostic = message
        return result

    @property
    def diagnostic(self) -> str | None:
        return self._diagnostic

    @property
    def is_null(self) -> bool:
        return self._diagnostic is not None

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __str__(self) -> str:
        if self._diagnostic and self._diagnostic.strip():
            return self._diagnostic
        return json.dumps(self.to_wire())


def coerce(cls: type[W], value: Any, *, keep_text: bool = False) -> W:
    """Build ``cls`` from a mapping, JSON text or bytes, or return its null variant.

    With ``keep_text`` an unparseable payload becomes the null variant's message
    verbatim, otherwise the parser error is reported.
    """
    if isinstance(value, cls):
        return value
    if value is None:
        return cls.null("")
    if isinstance(value, dict):
        try:
            return cls.model_validate(value)
        except ValidationError as exc:
            return cls.null(str(exc))

    text = unwrap_payload(value)
    if text in SENTINEL_PAYLOADS:
        return cls.null(text)
    try:
        return cls.model_validate_json(text)
    except ValueError as exc:
        if keep_text:
            return cls.null(text)
        return cls.null(str(exc) if text else "Empty response payload")
