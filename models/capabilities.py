"""
Model capability lookup.

Context window sizes and reasoning support come from the backend's model
catalog. Results, including models the catalog does not list, are memoized
per model id for the life of the process. A failed fetch falls back to
defaults without being cached so the next request tries again.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

import httpx

from constants import DEFAULT_CONTEXT_WINDOW

logger = logging.getLogger(__name__)

REASONING_PARAMETERS = ("reasoning", "include_reasoning")


@dataclass(frozen=True)
class CapabilityEntry:
    context_window: int
    supports_reasoning: bool = False


def parse_catalog_entry(model: Dict[str, Any], default_context_window: int) -> CapabilityEntry:
    """Build a CapabilityEntry from one catalog record.

    Raises ValueError or TypeError when the record carries a context length
    that is not a number.
    """
    top_provider = model.get("top_provider") if isinstance(model.get("top_provider"), dict) else {}
    context_window = model.get("context_length") or top_provider.get("context_length") or default_context_window
    supported = model.get("supported_parameters") or []
    return CapabilityEntry(
        context_window=int(context_window),
        supports_reasoning=any(param in supported for param in REASONING_PARAMETERS),
    )


class ModelCapabilities:
    """Per-process capability cache.

    One instance is created at application start-up and shared by reference.
    Concurrent misses for the same model may each fetch the catalog; the last
    writer wins, which is harmless because the values are identical.
    """

    def __init__(
        self,
        catalog_url: str,
        default_context_window: int = DEFAULT_CONTEXT_WINDOW,
        overrides: Optional[List[Dict[str, Any]]] = None,
        timeout: float = 10.0,
    ):
        self.catalog_url = catalog_url
        self.default_context_window = default_context_window
        self.timeout = timeout
        self._cache: Dict[str, CapabilityEntry] = {}
        self._missing: Set[str] = set()
        self._warm_up: Optional[asyncio.Task] = None

        for override in overrides or []:
            self._cache[override["id"]] = CapabilityEntry(
                context_window=override.get("context_length", default_context_window),
                supports_reasoning=override.get("supports_reasoning", False),
            )

    async def context_window(self, model_id: str) -> int:
        entry = await self.lookup(model_id)
        return entry.context_window if entry else self.default_context_window

    async def supports_reasoning(self, model_id: str) -> bool:
        entry = await self.lookup(model_id)
        return entry.supports_reasoning if entry else False

    def cached(self, model_id: str) -> Optional[CapabilityEntry]:
        return self._cache.get(model_id)

    async def lookup(self, model_id: str) -> Optional[CapabilityEntry]:
        """Return the cached entry, fetching the catalog once on a miss.

        Models absent from a successfully fetched catalog are remembered as
        missing. A failed fetch is not remembered.
        """
        if model_id in self._cache:
            return self._cache[model_id]
        if model_id in self._missing:
            return None

        catalog = await self._fetch_catalog()
        if catalog is None:
            return None

        for model in catalog:
            if not isinstance(model, dict) or not model.get("id"):
                continue
            try:
                self._cache[model["id"]] = parse_catalog_entry(model, self.default_context_window)
            except (TypeError, ValueError) as e:
                logger.debug(f"[CAPABILITIES] Skipping catalog entry {model['id']}: {e}")

        entry = self._cache.get(model_id)
        if entry is None:
            self._missing.add(model_id)
            logger.debug(f"[CAPABILITIES] {model_id} not in catalog, using defaults")
        return entry

    async def _fetch_catalog(self) -> Optional[List[Any]]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.catalog_url)
            if response.status_code != 200:
                logger.warning(f"[CAPABILITIES] Model catalog returned {response.status_code}")
                return None
            data = response.json().get("data", [])
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning(f"[CAPABILITIES] Failed to fetch model catalog: {e}")
            return None
        if not isinstance(data, list):
            logger.warning("[CAPABILITIES] Model catalog has no data list")
            return None
        return data

    def start_warm_up(self, model_ids: Iterable[str]) -> asyncio.Task:
        """Schedule capability lookups for models known at start-up."""
        wanted = [model_id for model_id in dict.fromkeys(model_ids) if model_id]
        self._warm_up = asyncio.ensure_future(self._run_warm_up(wanted))
        return self._warm_up

    async def _run_warm_up(self, model_ids: List[str]) -> None:
        for model_id in model_ids:
            await self.lookup(model_id)
        logger.debug(f"[CAPABILITIES] Warm-up finished for {model_ids}")

    async def ready(self) -> None:
        """Wait for the start-up warm-up, if one was scheduled."""
        if self._warm_up is not None:
            await asyncio.shield(self._warm_up)
