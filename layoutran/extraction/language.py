"""Script-based language and direction detection."""

from typing import Dict, Optional, Tuple
import re

from ..core.models import Direction, UNKNOWN_LANGUAGE

# Unicode ranges per script
SCRIPT_PATTERNS = {
    "hebrew": re.compile(r"[\u0590-\u05FF\uFB1D-\uFB4F]"),
    "arabic": re.compile(r"[\u0600-\u06FF\u0750-\u077F\u08A0-\u08FF\uFB50-\uFDFF\uFE70-\uFEFF]"),
    "latin": re.compile(r"[A-Za-z\u00C0-\u024F]"),
    "cyrillic": re.compile(r"[\u0400-\u04FF]"),
}

RTL_SCRIPTS = frozenset({"hebrew", "arabic"})

DEFAULT_SCRIPT_LANGUAGES = {
    "hebrew": "he",
    "arabic": "ar",
    "latin": "en",
    "cyrillic": "ru",
}

# Bidi control characters that never count towards a script
BIDI_CONTROLS = re.compile(r"[\u200E\u200F\u202A-\u202E\u2066-\u2069]")


def count_scripts(text: str) -> Dict[str, int]:
    """Count code points of each known script in text."""
    text = BIDI_CONTROLS.sub("", text or "")
    return {name: len(pattern.findall(text)) for name, pattern in SCRIPT_PATTERNS.items()}


def dominant_script(text: str) -> Optional[str]:
    """Return the script with the most code points, or None."""
    counts = count_scripts(text)
    best = max(counts.items(), key=lambda item: item[1])
    if best[1] == 0:
        return None
    # On a tie an RTL script wins; mixed lines are usually RTL text with Latin codes
    tied = [name for name, count in counts.items() if count == best[1]]
    for name in tied:
        if name in RTL_SCRIPTS:
            return name
    return best[0]


def detect_language(
    text: str,
    script_languages: Optional[Dict[str, str]] = None
) -> Tuple[str, Direction]:
    """
    Classify text by Unicode script ranges.

    Args:
        text: Block or cell text
        script_languages: Mapping of script name to language code

    Returns:
        (language, direction); ``unknown`` and LTR when no script is found
    """
    mapping = script_languages or DEFAULT_SCRIPT_LANGUAGES
    script = dominant_script(text)
    if script is None or script not in mapping:
        return UNKNOWN_LANGUAGE, Direction.LTR
    direction = Direction.RTL if script in RTL_SCRIPTS else Direction.LTR
    return mapping[script], direction


def is_rtl_text(text: str) -> bool:
    return dominant_script(text) in RTL_SCRIPTS
