"""Request encoding and tolerant response decoding for the PredictNow wire."""
from __future__ import annotations

import json
from datetime import date
from functools import lru_cache
from typing import Any, Callable, TypeVar

from pydantic import TypeAdapter, ValidationError

from predictnow.core.wire import SENTINEL_PAYLOADS, W, WireModel, coerce, unwrap_payload

T = TypeVar("T")

Weights = dict[date, dict[str, float]]


class CodecError(ValueError):
    """A response payload could not be decoded into the requested shape."""


def encode(value: WireModel) -> dict[str, Any]:
    """Wire mapping for ``value``: wire keys, ``yyyy-MM-dd`` dates, unset options omitted."""
    return value.to_wire()


def encode_json(value: WireModel) -> str:
    return json.dumps(encode(value))


def decode(payload: Any, target: type[W]) -> W:
    """Decode into a wire model. Never raises; failures become null variants."""
    return coerce(target, payload)


def decoder(target: type[W]) -> Callable[[bytes], W]:
    return lambda payload: decode(payload, target)


@lru_cache(maxsize=None)
def _adapter(shape: Any) -> TypeAdapter:
    return TypeAdapter(shape)


def decode_shape(payload: Any, shape: Any) -> Any:
    """Decode a plain JSON shape such as ``dict[str, list[str]]``.

    Raises CodecError for sentinel payloads and anything that does not match.
    """
    text = unwrap_payload(payload)
    if text in SENTINEL_PAYLOADS:
        raise CodecError(text)
    if not text:
        raise CodecError("Empty response payload")
    try:
        return _adapter(shape).validate_json(text)
    except ValidationError as exc:
        raise CodecError(str(exc)) from exc


def shape_decoder(shape: Any) -> Callable[[bytes], Any]:
    return lambda payload: decode_shape(payload, shape)


def _day(key: str) -> date:
    try:
        return date.fromisoformat(key.strip()[:10])
    except ValueError as exc:
        raise CodecError(f"Invalid weights date: {key!r}") from exc


def decode_weights(payload: Any) -> Weights:
    """Decode ``{date: {symbol: weight}}``; symbols without a weight are dropped."""
    raw = decode_shape(payload, dict[str, dict[str, float | None]])
    weights: Weights = {}
    for key, row in raw.items():
        weights[_day(key)] = {symbol: weight for symbol, weight in row.items() if weight is not None}
    return dict(sorted(weights.items()))
