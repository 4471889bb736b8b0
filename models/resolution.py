"""Mapping of requested model names onto backend model ids"""
from typing import Dict, Optional

MODEL_FAMILIES = ("opus", "sonnet", "haiku")


def resolve_target_model(
    requested_model: str,
    default_model: Optional[str] = None,
    model_map: Optional[Dict[str, str]] = None,
) -> str:
    """Pick the backend model for a request.

    The configured default replaces the requested model, and a family mapping
    (``opus``/``sonnet``/``haiku`` found in the requested name) overrides both.

    Args:
        requested_model: The model named in the client request
        default_model: Model to use for every request, if configured
        model_map: Family name -> backend model id

    Returns:
        The backend model id
    """
    target = default_model or requested_model
    lowered = (requested_model or "").lower()
    for family in MODEL_FAMILIES:
        mapped = (model_map or {}).get(family)
        if family in lowered and mapped:
            return mapped
    return target


def is_native_model(model_id: str) -> bool:
    """Aggregator ids are ``vendor/model``; anything else is an Anthropic model."""
    return "/" not in (model_id or "")
