from importlib import import_module
from typing import Any


def ok(message: str | None = None, **data: Any) -> dict[str, Any]:
    """Success envelope shared by every API route."""

    body: dict[str, Any] = {"success": True}
    if message is not None:
        body["message"] = message
    body.update(data)
    return body


def dump(schema, rows) -> Any:
    """Serialise ORM rows (or one row) through a response schema into JSON-ready data."""

    if isinstance(rows, list):
        return [schema.model_validate(row).model_dump(mode="json") for row in rows]
    return schema.model_validate(rows).model_dump(mode="json")


modules = [
    'auth',
    'boards',
    'projects',
    'items',
    'timeline',
    'evidence',
    'comments',
    'project_comments',
    'materials',
    'events',
]

for m in modules:
    import_module(f'.{m}', __name__)

__all__ = modules + ['dump', 'ok']
