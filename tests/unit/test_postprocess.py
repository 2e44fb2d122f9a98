"""Unit tests for kind post-processing and direction isolation."""

from layoutran.core.models import BlockKind, Direction
from layoutran.translation.postprocess import (
    LRI, PDI, RLI, apply_direction, capitalize_first, postprocess_by_kind, strip_isolates
)


def test_heading_is_capitalized():
    assert postprocess_by_kind(BlockKind.HEADING, "כותרת", "main title") == "Main title"
    assert capitalize_first("«quoted»") == "«Quoted»"
    assert capitalize_first("42 items") == "42 items"


def test_bullet_marker_is_restored():
    assert postprocess_by_kind(BlockKind.BULLET, "• פריט", "item") == "• item"
    assert postprocess_by_kind(BlockKind.BULLET, "• פריט", "• item") == "• item"


def test_numbered_prefix_is_restored():
    assert postprocess_by_kind(BlockKind.NUMBERED, "3. שלב", "step") == "3. step"
    assert postprocess_by_kind(BlockKind.NUMBERED, "3. שלב", "3. step") == "3. step"


def test_paragraph_is_untouched():
    assert postprocess_by_kind(BlockKind.PARAGRAPH, "טקסט", "text") == "text"


def test_postprocessing_is_idempotent():
    once = postprocess_by_kind(BlockKind.BULLET, "• פריט", "item")
    assert postprocess_by_kind(BlockKind.BULLET, "• פריט", once) == once


def test_rtl_source_into_ltr_target_is_isolated():
    text, direction = apply_direction("Hello", Direction.RTL, "en")
    assert text == f"{LRI}Hello{PDI}"
    assert direction == Direction.MIXED


def test_ltr_source_into_rtl_target_is_isolated():
    text, direction = apply_direction("שלום", Direction.LTR, "he")
    assert text == f"{RLI}שלום{PDI}"
    assert direction == Direction.MIXED


def test_same_direction_is_not_wrapped():
    assert apply_direction("Bonjour", Direction.LTR, "fr") == ("Bonjour", Direction.LTR)
    assert apply_direction("مرحبا", Direction.RTL, "ar") == ("مرحبا", Direction.RTL)


def test_wrapping_is_idempotent():
    once, _ = apply_direction("Hello", Direction.RTL, "en")
    twice, direction = apply_direction(once, Direction.RTL, "en")
    assert twice == once
    assert direction == Direction.MIXED
    assert strip_isolates(once) == "Hello"
