"""Unit tests for the block model."""

import base64
import json

import pytest

from layoutran.core.models import (
    BlockKind, ContentType, Direction, ImageBlock, Layout, Position, TableBlock,
    TableCell, TextBlock, UNKNOWN_LANGUAGE, compute_needs_translation, natural_direction
)
from layoutran.core.models import TableClosedError


def _block(text="שלום", language=None):
    return TextBlock(id="b", text=text, position=Position(0, 0, 100, 12), language=language)


def test_needs_translation_follows_language():
    block = _block().update_language("he", "en")
    assert block.needs_translation is True

    block.update_language("en", "en")
    assert block.needs_translation is False


def test_unknown_language_never_translated():
    block = _block("1234").update_language(UNKNOWN_LANGUAGE, "en")
    assert block.needs_translation is False
    assert compute_needs_translation(None, "en") is False
    assert compute_needs_translation("he", None) is False


def test_language_comparison_ignores_case():
    assert compute_needs_translation("EN", "en") is False


def test_failed_block_is_never_retried():
    block = _block().update_language("he", "en")
    block.mark_failed("provider down")

    assert block.needs_translation is False
    assert block.translation_failed
    assert block.metadata["failure_reason"] == "provider down"

    # Re-detecting the language keeps the failure
    block.update_language("he", "en")
    assert block.needs_translation is False


def test_image_block_is_never_translated():
    image = ImageBlock(id="img", position=Position(0, 0, 10, 10), image_data=b"\x89PNG")
    assert image.needs_translation is False
    assert ImageBlock.content_type == ContentType.IMAGE
    assert TextBlock.content_type == ContentType.TEXT


def test_natural_direction():
    assert natural_direction("he") == Direction.RTL
    assert natural_direction("ar-EG") == Direction.RTL
    assert natural_direction("en") == Direction.LTR
    assert natural_direction(None) == Direction.LTR


def test_table_close_pads_rows_and_votes_direction():
    table = TableBlock(id="t", position=Position(0, 0, 100, 40))
    table.add_row([TableCell("א", direction=Direction.RTL), TableCell("ב", direction=Direction.RTL)])
    table.add_row([TableCell("x")])
    table.close()

    assert table.shape == (2, 2)
    assert table.cell(1, 1).content == ""
    assert table.style.direction == Direction.RTL
    assert isinstance(table.rows, tuple)


def test_closed_table_shape_is_frozen():
    table = TableBlock(id="t", position=Position(0, 0, 100, 40))
    table.add_row([TableCell("a"), TableCell("b")])
    table.close()

    with pytest.raises(TableClosedError):
        table.add_row([TableCell("c")])

    # Cells stay mutable
    table.cell(0, 0).content = "changed"
    assert table.cell(0, 0).content == "changed"
    assert table.shape == (1, 2)


def test_layout_retarget_recomputes_flags(sample_layout):
    sample_layout.retarget("he")
    flags = {b.id: b.needs_translation for b in sample_layout.text_blocks}
    assert flags == {"block-0": False, "block-1": True}

    table = sample_layout.tables[0]
    assert table.cell(0, 0).needs_translation is False
    assert table.cell(1, 1).needs_translation is False


def test_layout_accessors(sample_layout):
    assert [b.id for b in sample_layout.text_blocks] == ["block-0", "block-1"]
    assert len(sample_layout.tables) == 1
    assert sample_layout.get_block("table-0") is sample_layout.tables[0]
    assert sample_layout.get_block("missing") is None


def test_layout_serialization_is_deterministic(sample_layout):
    image = ImageBlock(id="image-3", position=Position(0, 0, 5, 5), image_data=b"abc")
    sample_layout.blocks.append(image)

    first = sample_layout.to_json()
    second = sample_layout.to_json()
    assert first == second

    data = json.loads(first)
    assert data["blocks"][0]["kind"] == BlockKind.PARAGRAPH.value
    assert data["blocks"][2]["content_type"] == "table"
    assert base64.b64decode(data["blocks"][3]["image_data"]) == b"abc"
    assert "כותרת" in first


def test_position_union():
    box = Position(10, 10, 10, 10).union(Position(30, 5, 10, 10))
    assert (box.x, box.y, box.right, box.bottom) == (10, 5, 40, 20)
