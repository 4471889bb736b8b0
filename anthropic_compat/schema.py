"""JSON-schema clean-up for tool definitions."""

from typing import Any

_COMBINATORS = ("anyOf", "allOf", "oneOf")


def strip_uri_format(schema: Any) -> Any:
    """Return a copy of ``schema`` with every ``format: "uri"`` removed.

    Several OpenAI-compatible backends reject the ``uri`` string format, so it
    is stripped from every node: ``properties``, ``items``,
    ``additionalProperties``, the ``anyOf``/``allOf``/``oneOf`` combinators and
    any other nested object or array. The input is never mutated.
    """
    if isinstance(schema, list):
        return [strip_uri_format(item) for item in schema]
    if not isinstance(schema, dict):
        return schema

    result = {}
    for key, value in schema.items():
        if key == "format" and value == "uri":
            continue
        if key == "properties" and isinstance(value, dict):
            # Property names are user data, so only their schemas are walked
            result[key] = {name: strip_uri_format(prop) for name, prop in value.items()}
        elif key in _COMBINATORS and isinstance(value, list):
            result[key] = [strip_uri_format(option) for option in value]
        else:
            result[key] = strip_uri_format(value)
    return result
