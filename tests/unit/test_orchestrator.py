"""Unit tests for the translation orchestrator."""

import pytest

from layoutran.core.config import TranslationConfig
from layoutran.core.exceptions import RateLimitExceeded, TranslationProviderError
from layoutran.core.models import (
    BlockKind, Direction, ImageBlock, Layout, Position, Style, TableBlock, TableCell, TextBlock
)
from layoutran.translation.orchestrator import TranslationOrchestrator, cell_key
from layoutran.translation.postprocess import LRI, PDI, strip_isolates
from layoutran.utils.cache import TranslationCache
from layoutran.utils.rate_limiter import TokenBucket

from conftest import FailingBackend, FakeBackend


def _hebrew_layout(count: int) -> Layout:
    blocks = [
        TextBlock(id=f"block-{i}", text=f"פסקה מספר {i}", position=Position(72, 72 + 20 * i, 300, 14),
                  direction=Direction.RTL).update_language("he", "en")
        for i in range(count)
    ]
    return Layout(blocks=blocks, target_language="en")


def _config(**kwargs) -> TranslationConfig:
    kwargs.setdefault("retry_delay", 0.0)
    return TranslationConfig(**kwargs)


@pytest.mark.asyncio
async def test_items_are_batched_by_size():
    backend = FakeBackend()
    orchestrator = TranslationOrchestrator(backend, _config(batch_size=10))

    await orchestrator.translate(_hebrew_layout(25), "en")

    assert orchestrator.stats["batch_sizes"] == [10, 10, 5]
    assert orchestrator.stats["batches"] == 3
    assert backend.calls == 25


@pytest.mark.asyncio
async def test_translation_is_applied_in_place(sample_layout):
    backend = FakeBackend(lambda text, target: "main title" if text == "כותרת" else f"t({text})")
    orchestrator = TranslationOrchestrator(backend, _config())

    result = await orchestrator.translate(sample_layout, "en")

    assert result is sample_layout
    heading = sample_layout.get_block("block-0")
    assert heading.text == f"{LRI}main title{PDI}"
    assert heading.direction == Direction.MIXED
    assert heading.language == "en"
    assert heading.needs_translation is False
    assert heading.metadata["source_text"] == "כותרת"
    assert heading.metadata["source_language"] == "he"


@pytest.mark.asyncio
async def test_heading_is_capitalized_after_translation():
    block = TextBlock(id="h", text="כותרת", position=Position(0, 0, 100, 20), kind=BlockKind.HEADING,
                      direction=Direction.RTL).update_language("he", "en")
    orchestrator = TranslationOrchestrator(FakeBackend(lambda t, _: "summary"), _config())

    await orchestrator.translate(Layout(blocks=[block]), "en")

    assert block.text == f"{LRI}Summary{PDI}"


@pytest.mark.asyncio
async def test_target_language_blocks_are_a_no_op():
    block = TextBlock(id="b", text="Already English", position=Position(0, 0, 100, 12)).update_language("en", "en")
    backend = FakeBackend()
    orchestrator = TranslationOrchestrator(backend, _config())

    await orchestrator.translate(Layout(blocks=[block]), "en")

    assert block.text == "Already English"
    assert backend.calls == 0
    assert orchestrator.stats["provider_calls"] == 0


@pytest.mark.asyncio
async def test_images_and_unknown_text_are_kept():
    image = ImageBlock(id="image-0", position=Position(0, 0, 10, 10), image_data=b"img")
    numbers = TextBlock(id="n", text="12/05/2024", position=Position(0, 20, 100, 12)).update_language("unknown", "en")
    backend = FakeBackend()
    orchestrator = TranslationOrchestrator(backend, _config())

    images, keep, items = orchestrator.partition(Layout(blocks=[image, numbers]))
    assert images == [image]
    assert keep == [numbers]
    assert items == []


@pytest.mark.asyncio
async def test_second_pass_makes_no_provider_calls(sample_layout):
    backend = FakeBackend()
    orchestrator = TranslationOrchestrator(backend, _config())

    await orchestrator.translate(sample_layout, "en")
    first = sample_layout.to_json()
    calls = backend.calls

    await orchestrator.translate(sample_layout, "en")

    assert backend.calls == calls
    assert orchestrator.stats["provider_calls"] == 0
    assert sample_layout.to_json() == first


@pytest.mark.asyncio
async def test_numbers_are_protected():
    block = TextBlock(id="b", text="Room 204 costs $50", position=Position(0, 0, 200, 12)).update_language("en", "fr")
    seen = []

    def translate(text, target):
        seen.append(text)
        return text.replace("Room", "Chambre").replace("costs", "coûte")

    orchestrator = TranslationOrchestrator(FakeBackend(translate), _config())
    await orchestrator.translate(Layout(blocks=[block]), "fr")

    assert "204" not in seen[0] and "50" not in seen[0]
    assert block.text == "Chambre 204 coûte $50"


@pytest.mark.asyncio
async def test_corrupted_placeholders_degrade_the_block():
    block = TextBlock(id="b", text="Room 204", position=Position(0, 0, 200, 12)).update_language("en", "fr")
    backend = FakeBackend(lambda text, target: "Chambre")
    orchestrator = TranslationOrchestrator(backend, _config())

    await orchestrator.translate(Layout(blocks=[block]), "fr")

    assert block.text == "Room 204"
    assert block.translation_failed
    assert block.metadata["failure_type"] == "PlaceholderMismatchError"
    # Not retryable: one call only
    assert backend.calls == 1


@pytest.mark.asyncio
async def test_table_cells_are_written_back_in_place(sample_layout):
    backend = FakeBackend(lambda text, target: {"שם": "Name", "ערך": "Value", "חדר": "Room"}.get(text, text))
    orchestrator = TranslationOrchestrator(backend, _config())

    await orchestrator.translate(sample_layout, "en")

    table = sample_layout.tables[0]
    assert table.shape == (2, 2)
    assert table.cell(0, 0).content == f"{LRI}Name{PDI}"
    assert table.cell(0, 1).content == f"{LRI}Value{PDI}"
    assert table.cell(1, 0).content == f"{LRI}Room{PDI}"
    # Unknown-language cell is untouched
    assert table.cell(1, 1).content == "204"
    assert cell_key("table-0", 1, 0) == "table-0:1:0"


@pytest.mark.asyncio
async def test_retryable_failures_are_retried_then_degraded():
    backend = FailingBackend(retryable=True)
    orchestrator = TranslationOrchestrator(backend, _config(max_attempts=3))
    layout = _hebrew_layout(2)

    await orchestrator.translate(layout, "en")

    assert backend.calls == 6
    assert orchestrator.stats["retries"] == 4
    assert orchestrator.stats["degraded"] == 2
    for block in layout.text_blocks:
        assert block.text.startswith("פסקה")
        assert block.translation_failed
        assert block.needs_translation is False


@pytest.mark.asyncio
async def test_permanent_failures_are_not_retried():
    backend = FailingBackend(retryable=False)
    orchestrator = TranslationOrchestrator(backend, _config(max_attempts=3))

    await orchestrator.translate(_hebrew_layout(1), "en")

    assert backend.calls == 1
    assert orchestrator.stats["degraded"] == 1


@pytest.mark.asyncio
async def test_transient_failure_recovers_on_retry():
    backend = FakeBackend(errors=[TranslationProviderError("fake", "timeout")])
    orchestrator = TranslationOrchestrator(backend, _config())
    layout = _hebrew_layout(1)

    await orchestrator.translate(layout, "en")

    block = layout.text_blocks[0]
    assert not block.translation_failed
    assert block.language == "en"
    assert orchestrator.stats["retries"] == 1
    assert orchestrator.stats["translated"] == 1


@pytest.mark.asyncio
async def test_provider_rate_limit_honours_retry_after(monkeypatch):
    delays = []

    async def fake_sleep(delay):
        delays.append(delay)

    monkeypatch.setattr("layoutran.translation.orchestrator.asyncio.sleep", fake_sleep)
    backend = FakeBackend(errors=[RateLimitExceeded(retry_after=7.5, provider="fake")])
    orchestrator = TranslationOrchestrator(backend, _config(retry_delay=1.0))

    await orchestrator.translate(_hebrew_layout(1), "en")

    assert delays == [7.5]
    assert orchestrator.stats["rate_limited"] == 1
    assert orchestrator.stats["translated"] == 1


@pytest.mark.asyncio
async def test_empty_bucket_degrades_without_failing_the_document():
    class Clock:
        def __call__(self):
            return 0.0

    bucket = TokenBucket(capacity=1, refill_per_minute=1, clock=Clock())
    backend = FakeBackend()
    orchestrator = TranslationOrchestrator(backend, _config(max_attempts=1), rate_limiter=bucket)
    layout = _hebrew_layout(3)

    await orchestrator.translate(layout, "en")

    assert backend.calls == 1
    assert orchestrator.stats["rate_limited"] == 2
    assert orchestrator.stats["degraded"] == 2
    failures = [b.metadata.get("failure_type") for b in layout.text_blocks if b.translation_failed]
    assert failures == ["RateLimitExceeded", "RateLimitExceeded"]


@pytest.mark.asyncio
async def test_cache_is_shared_across_documents():
    cache = TranslationCache()
    backend = FakeBackend()
    config = _config()

    first = TranslationOrchestrator(backend, config, cache=cache)
    await first.translate(_hebrew_layout(3), "en")

    second = TranslationOrchestrator(backend, config, cache=cache)
    layout = _hebrew_layout(3)
    await second.translate(layout, "en")

    assert backend.calls == 3
    assert second.stats["cache_hits"] == 3
    assert all(b.direction == Direction.MIXED for b in layout.text_blocks)
    assert layout.text_blocks[0].text == f"{LRI}en:פסקה מספר 0{PDI}"


@pytest.mark.asyncio
@pytest.mark.parametrize("text,kind,marker", [
    ("1. שלום עולם", BlockKind.NUMBERED, "1."),
    ("• שלום עולם", BlockKind.BULLET, "•"),
])
async def test_cached_list_items_keep_a_single_marker(text, kind, marker):
    cache = TranslationCache()
    backend = FakeBackend(lambda source, target: source.replace("שלום עולם", "hello world"))

    def layout():
        block = TextBlock(id="item", text=text, position=Position(72, 72, 300, 14),
                          kind=kind, direction=Direction.RTL).update_language("he", "en")
        return Layout(blocks=[block], target_language="en")

    first = layout()
    await TranslationOrchestrator(backend, _config(), cache=cache).translate(first, "en")
    second = layout()
    orchestrator = TranslationOrchestrator(backend, _config(), cache=cache)
    await orchestrator.translate(second, "en")

    assert orchestrator.stats["cache_hits"] == 1
    assert backend.calls == 1
    translated = second.blocks[0].text
    assert translated == first.blocks[0].text
    assert translated.startswith(LRI) and translated.endswith(PDI)
    assert strip_isolates(translated).count(marker) == 1
    assert "hello world" in translated


@pytest.mark.asyncio
async def test_large_document_waits_for_tokens_instead_of_degrading(monkeypatch):
    waits = []

    async def fake_sleep(delay):
        waits.append(delay)

    monkeypatch.setattr("layoutran.utils.rate_limiter.asyncio.sleep", fake_sleep)
    backend = FakeBackend()
    orchestrator = TranslationOrchestrator(backend, _config(retry_delay=0.1, rate_limit_timeout=60.0))
    layout = _hebrew_layout(150)

    await orchestrator.translate(layout, "en")

    assert backend.calls == 150
    assert orchestrator.stats["degraded"] == 0
    assert orchestrator.stats["rate_limited"] == 0
    assert all(not b.translation_failed for b in layout.text_blocks)
    # Calls beyond the burst capacity are spread out at the refill rate
    assert len(waits) == 50
    assert max(waits) == pytest.approx(30.0, rel=0.01)


@pytest.mark.asyncio
async def test_disabled_cache():
    backend = FakeBackend()
    orchestrator = TranslationOrchestrator(backend, _config(enable_cache=False))
    assert orchestrator.cache is None

    await orchestrator.translate(_hebrew_layout(2), "en")
    assert orchestrator.get_stats()["provider_calls"] == 2
    assert "cache" not in orchestrator.get_stats()


@pytest.mark.asyncio
async def test_retarget_translates_into_a_new_language():
    block = TextBlock(id="b", text="Hello", position=Position(0, 0, 100, 12)).update_language("en", "en")
    backend = FakeBackend(lambda text, target: "שלום")
    orchestrator = TranslationOrchestrator(backend, _config())

    await orchestrator.translate(Layout(blocks=[block], target_language="en"), "he")

    assert block.language == "he"
    assert block.direction == Direction.MIXED
    assert backend.requests[0].source_lang == "en"
    assert backend.requests[0].target_lang == "he"
