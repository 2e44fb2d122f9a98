"""
Translation orchestration over a Layout.

Text blocks and table cells that need translation are flattened into
work items, split into fixed-size batches and dispatched concurrently.
Each item goes through cache lookup, token protection, rate limiting,
the provider call, restoration, kind-specific post-processing and
direction adjustment. Failures are retried per item and finally
degraded; a single block never fails the document.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union
import asyncio
import logging

from ..core.config import TranslationConfig
from ..core.exceptions import (
    LayoutranError, RateLimitExceeded, TranslationProviderError
)
from ..core.models import (
    BlockKind, Direction, ImageBlock, Layout, TableBlock, TableCell, TextBlock
)
from ..masking.engine import MaskingEngine
from ..utils.cache import TranslationCache
from ..utils.rate_limiter import CallSpacer, TokenBucket
from .base import TranslationBackend, TranslationRequest
from .postprocess import apply_direction, postprocess_by_kind
from .results import Degraded, Outcome, Translated

logger = logging.getLogger(__name__)


@dataclass
class WorkItem:
    """One text block or table cell to translate."""
    key: str
    text: str
    language: Optional[str]
    direction: Direction
    kind: BlockKind
    target: Union[TextBlock, TableCell]


def cell_key(table_id: str, row: int, col: int) -> str:
    return f"{table_id}:{row}:{col}"


def is_retryable(error: Exception) -> bool:
    if isinstance(error, RateLimitExceeded):
        return True
    if isinstance(error, TranslationProviderError):
        return error.retryable
    return False


def new_stats() -> Dict[str, Any]:
    return {
        "batches": 0,
        "batch_sizes": [],
        "provider_calls": 0,
        "cache_hits": 0,
        "rate_limited": 0,
        "retries": 0,
        "translated": 0,
        "degraded": 0,
    }


class TranslationOrchestrator:
    """Translate every text block and table cell of a Layout in place."""

    def __init__(
        self,
        backend: TranslationBackend,
        config: Optional[TranslationConfig] = None,
        cache: Optional[TranslationCache] = None,
        rate_limiter: Optional[TokenBucket] = None
    ):
        """
        Args:
            backend: Translation provider
            config: Batching, retry and limiter settings
            cache: Shared cache; built from config when omitted
            rate_limiter: Shared token bucket; built from config when omitted
        """
        self.backend = backend
        self.config = config or TranslationConfig()
        self.masking = MaskingEngine(self.config.masking)
        if cache is None and self.config.enable_cache:
            cache = TranslationCache(cache_dir=self.config.cache_dir, ttl=self.config.cache_ttl)
        self.cache = cache
        self.rate_limiter = rate_limiter or TokenBucket(
            capacity=self.config.rate_limit_capacity,
            refill_per_minute=self.config.rate_limit_per_minute
        )
        self.stats = new_stats()

    def partition(self, layout: Layout) -> Tuple[List[ImageBlock], List[TextBlock], List[WorkItem]]:
        """Split blocks into images, text to keep and items to translate."""
        images, keep, items = [], [], []
        for block in layout.blocks:
            if isinstance(block, ImageBlock):
                images.append(block)
            elif isinstance(block, TextBlock):
                if block.needs_translation:
                    items.append(WorkItem(block.id, block.text, block.language,
                                          block.direction, block.kind, block))
                else:
                    keep.append(block)
            elif isinstance(block, TableBlock):
                for r, c, cell in block.cells():
                    if cell.needs_translation:
                        items.append(WorkItem(cell_key(block.id, r, c), cell.content, cell.language,
                                              cell.direction, BlockKind.PARAGRAPH, cell))
        return images, keep, items

    async def translate(self, layout: Layout, target_language: str) -> Layout:
        """
        Translate a layout in place.

        Returns:
            The same Layout reference
        """
        self.stats = new_stats()
        layout.retarget(target_language)
        images, keep, items = self.partition(layout)
        logger.info(f"Translating {len(items)} items to {target_language} "
                    f"({len(keep)} blocks kept, {len(images)} images)")
        if not items:
            return layout

        size = self.config.batch_size
        batches = [items[i:i + size] for i in range(0, len(items), size)]
        self.stats["batches"] = len(batches)
        self.stats["batch_sizes"] = [len(b) for b in batches]

        spacer = CallSpacer(self.config.min_call_interval)
        results = await asyncio.gather(*[
            self._run_batch(batch, target_language, index, spacer)
            for index, batch in enumerate(batches)
        ])

        outcomes: Dict[str, Outcome] = {}
        for batch_outcomes in results:
            outcomes.update(batch_outcomes)

        # Apply in original order; batches may finish in any order
        for item in items:
            self._apply(item, outcomes[item.key], target_language)

        logger.info(f"Translation finished: {self.stats['translated']} translated, "
                    f"{self.stats['degraded']} degraded, {self.stats['provider_calls']} provider calls, "
                    f"{self.stats['cache_hits']} cache hits")
        return layout

    async def _run_batch(self, batch: List[WorkItem], target: str, index: int,
                         spacer: CallSpacer) -> Dict[str, Outcome]:
        if self.config.batch_delay > 0 and index:
            await asyncio.sleep(self.config.batch_delay * index)

        outcomes: Dict[str, Outcome] = {}
        pending = list(batch)
        errors: List[Exception] = []
        for attempt in range(1, self.config.max_attempts + 1):
            if attempt > 1:
                self.stats["retries"] += len(pending)
                await asyncio.sleep(self._backoff(attempt, errors))

            results = await asyncio.gather(*[self._attempt(item, target, spacer) for item in pending])

            errors = []
            retry: List[WorkItem] = []
            for item, result in zip(pending, results):
                if isinstance(result, Translated):
                    outcomes[item.key] = Translated(result.key, result.text, result.direction,
                                                    result.from_cache, attempt)
                elif is_retryable(result) and attempt < self.config.max_attempts:
                    retry.append(item)
                    errors.append(result)
                else:
                    outcomes[item.key] = Degraded(item.key, str(result).split("\n")[0],
                                                  type(result).__name__, attempt)
            if not retry:
                break
            logger.debug(f"Batch {index}: retrying {len(retry)} items (attempt {attempt + 1})")
            pending = retry
        return outcomes

    def _backoff(self, attempt: int, errors: List[Exception]) -> float:
        delay = self.config.retry_delay * (attempt - 1)
        waits = [e.retry_after for e in errors if isinstance(e, RateLimitExceeded)]
        return max([delay] + waits)

    async def _attempt(self, item: WorkItem, target: str,
                       spacer: CallSpacer) -> Union[Translated, Exception]:
        try:
            return await self._translate_item(item, target, spacer)
        except LayoutranError as e:
            if isinstance(e, RateLimitExceeded):
                self.stats["rate_limited"] += 1
            logger.warning(f"Item {item.key} failed: {e.message}")
            return e
        except Exception as e:
            logger.warning(f"Item {item.key} failed with unexpected error: {e}")
            return TranslationProviderError(self.backend.name, str(e), retryable=True, original_error=e)

    async def _translate_item(self, item: WorkItem, target: str, spacer: CallSpacer) -> Translated:
        cached = self.cache.get(item.text, target) if self.cache is not None else None
        from_cache = cached is not None

        if from_cache:
            self.stats["cache_hits"] += 1
            text = cached
        else:
            masked = self.masking.mask(item.text)
            await self.rate_limiter.acquire(timeout=self.config.rate_limit_timeout,
                                            provider=self.backend.name)
            await spacer.wait()
            self.stats["provider_calls"] += 1
            response = await self.backend.translate(TranslationRequest(
                text=masked.text,
                source_lang=item.language,
                target_lang=target,
                block_id=item.key
            ))
            raw = self.masking.unmask(response.translation, masked.masks)
            text = postprocess_by_kind(item.kind, item.text, raw)
            # Cached text carries no isolates; direction is applied per hit
            if self.cache is not None:
                self.cache.set(item.text, target, text)

        text, direction = apply_direction(text, item.direction, target)
        return Translated(item.key, text, direction, from_cache)

    def _apply(self, item: WorkItem, outcome: Outcome, target: str) -> None:
        node = item.target
        if isinstance(outcome, Degraded):
            node.mark_failed(outcome.reason)
            node.metadata["failure_type"] = outcome.error_type
            self.stats["degraded"] += 1
            return

        node.metadata["source_text"] = item.text
        node.metadata["source_language"] = item.language
        if isinstance(node, TextBlock):
            node.text = outcome.text
        else:
            node.content = outcome.text
        node.direction = outcome.direction
        node.update_language(target, target)
        self.stats["translated"] += 1

    def get_stats(self) -> Dict[str, Any]:
        stats = dict(self.stats)
        if self.cache is not None:
            stats["cache"] = self.cache.get_stats()
        stats["rate_limiter"] = self.rate_limiter.get_stats()
        return stats
