"""JSON response envelope helpers."""

from typing import Any

from pydantic import BaseModel


def dump(value: Any) -> Any:
    """Convert models (and containers of models) to JSON-ready data."""
    if isinstance(value, BaseModel):
        return value.model_dump(by_alias=True, mode="json")
    if isinstance(value, list | tuple):
        return [dump(item) for item in value]
    if isinstance(value, dict):
        return {key: dump(item) for key, item in value.items()}
    return value


def success(data: Any) -> dict[str, Any]:
    """Wrap a payload in the success envelope.

    List payloads also report their length under ``results``.
    """
    body: dict[str, Any] = {"status": "success"}
    if isinstance(data, list):
        body["results"] = len(data)
    body["data"] = dump(data)
    return body
