"""System prompt rewriting for non-Anthropic backends."""
from constants import IDENTITY_PREAMBLE, IDENTITY_SUBSTITUTIONS


def filter_identity(system_prompt: str) -> str:
    """Strip claims that the backend model is Claude from a system prompt.

    Only ever applied to the system prompt, never to user or assistant
    content.
    """
    filtered = system_prompt
    for pattern, replacement in IDENTITY_SUBSTITUTIONS:
        filtered = pattern.sub(replacement, filtered)
    return IDENTITY_PREAMBLE + filtered
