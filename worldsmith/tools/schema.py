"""JSON schema clean-up before tools are advertised to a provider."""

from typing import Any

# Keys some providers reject in tool parameter schemas
STRIPPED_SCHEMA_KEYS = frozenset({"additionalProperties", "$schema", "schema"})


def sanitize_schema(schema: Any) -> Any:
    """Recursively drop rejected metadata keys from a JSON schema.

    Property names inside a `properties` mapping are user data, not schema
    keywords, so a property literally called `schema` survives.
    """
    return _sanitize(schema, in_properties=False)


def _sanitize(node: Any, in_properties: bool) -> Any:
    if isinstance(node, list):
        return [_sanitize(item, in_properties=False) for item in node]
    if not isinstance(node, dict):
        return node

    cleaned: dict[str, Any] = {}
    for key, value in node.items():
        if not in_properties and key in STRIPPED_SCHEMA_KEYS:
            continue
        if in_properties:
            cleaned[key] = _sanitize(value, in_properties=False)
        else:
            cleaned[key] = _sanitize(value, in_properties=key in ("properties", "$defs", "definitions"))
    return cleaned
