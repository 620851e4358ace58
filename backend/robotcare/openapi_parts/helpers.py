"""Helper functions for the OpenAPI builder."""
from typing import Any, Dict, Iterable, Optional


def object_schema(properties: Dict[str, Any], required: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        schema["required"] = list(required)
    return schema


def ref(name: str) -> Dict[str, str]:
    return {"$ref": f"#/components/schemas/{name}"}


def json_body(schema: Dict[str, Any]) -> Dict[str, Any]:
    return {"content": {"application/json": {"schema": schema}}}


def caching_headers() -> Dict[str, Any]:
    return {
        "ETag": {"schema": {"type": "string"}},
        "Last-Modified": {"schema": {"type": "string"}},
        "X-Last-Modified-ISO": {"schema": {"type": "string"}},
    }


def error_responses(*codes: str) -> Dict[str, Any]:
    return {code: {"$ref": f"#/components/responses/{ERROR_RESPONSES[code]}"} for code in codes}


ERROR_RESPONSES = {
    "400": "BadRequest",
    "403": "Forbidden",
    "404": "NotFound",
    "409": "Conflict",
}


__all__ = ["object_schema", "ref", "json_body", "caching_headers", "error_responses", "ERROR_RESPONSES"]
