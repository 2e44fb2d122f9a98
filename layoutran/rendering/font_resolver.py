"""
Font resolution for writers.

Maps source font names to the families a writer can use, and locates a
Unicode font for scripts the PDF base-14 fonts cannot show.
Downloads and caches fonts when enabled.
"""

import logging
import urllib.request
from pathlib import Path
from typing import Dict, List, Optional

from ..core.models import Style

logger = logging.getLogger(__name__)

SERIF_INDICATORS = ["times", "roman", "serif", "georgia", "garamond", "cambria", "david", "frank"]
MONO_INDICATORS = ["courier", "mono", "consolas", "menlo", "code", "fixed"]


class FontResolver:
    """Resolve and cache fonts for different language scripts."""

    FONT_URLS = {
        "hebrew": "https://github.com/google/fonts/raw/main/ofl/notosanshebrew/NotoSansHebrew%5Bwdth%2Cwght%5D.ttf",
        "arabic": "https://github.com/google/fonts/raw/main/ofl/notosansarabic/NotoSansArabic%5Bwdth%2Cwght%5D.ttf",
        "cyrillic": "https://github.com/google/fonts/raw/main/ofl/notosans/NotoSans%5Bwdth%2Cwght%5D.ttf",
    }

    LANG_TO_SCRIPT = {
        "he": "hebrew",
        "iw": "hebrew",
        "yi": "hebrew",
        "ar": "arabic",
        "fa": "arabic",
        "ur": "arabic",
        "ru": "cyrillic",
        "uk": "cyrillic",
        "bg": "cyrillic",
    }

    def __init__(self, cache_dir: Optional[Path] = None, download_enabled: bool = False):
        """
        Args:
            cache_dir: Directory to cache fonts (default: ~/.layoutran/fonts)
            download_enabled: Whether to download fonts if missing
        """
        self.cache_dir = Path(cache_dir) if cache_dir else Path.home() / ".layoutran" / "fonts"
        self.download_enabled = download_enabled
        self._font_cache: Dict[str, Optional[Path]] = {}

    @staticmethod
    def css_family(style: Style) -> str:
        """CSS generic family for a source font name."""
        family = (style.font or "").lower().replace(" ", "").replace("-", "")
        if any(m in family for m in MONO_INDICATORS):
            return "monospace"
        if any(s in family for s in SERIF_INDICATORS):
            return "serif"
        return "sans-serif"

    @staticmethod
    def docx_family(style: Style) -> str:
        """Font name written to DOCX runs; subset prefixes like ABCDEF+ are dropped."""
        name = style.font or "Arial"
        if len(name) > 7 and name[6] == "+" and name[:6].isupper():
            name = name[7:]
        return name

    def get_font_for_language(self, lang_code: Optional[str]) -> Optional[Path]:
        """
        Get a font file for a language.

        Returns:
            Path to a cached font file, or None if not needed or not available
        """
        if not lang_code:
            return None
        lang_code = lang_code.lower().split("-")[0]
        if lang_code in self._font_cache:
            return self._font_cache[lang_code]

        script = self.LANG_TO_SCRIPT.get(lang_code)
        if not script:
            # Latin text is covered by base-14 fonts
            self._font_cache[lang_code] = None
            return None

        font_path = self.cache_dir / f"noto-{script}.ttf"
        if font_path.exists():
            self._font_cache[lang_code] = font_path
            return font_path

        if self.download_enabled:
            try:
                logger.info(f"Downloading font for {lang_code} ({script})...")
                self._download_font(self.FONT_URLS[script], font_path)
                self._font_cache[lang_code] = font_path
                return font_path
            except RuntimeError as e:
                logger.error(f"Failed to download font for {lang_code}: {e}")

        logger.debug(f"No font file for {lang_code}; relying on built-in fallback fonts")
        self._font_cache[lang_code] = None
        return None

    def _download_font(self, url: str, dest_path: Path) -> None:
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = dest_path.with_suffix('.tmp')
        try:
            with urllib.request.urlopen(url, timeout=30) as response:
                data = response.read()
            if len(data) < 1000:
                raise ValueError("Downloaded file too small to be a valid font")
            with open(temp_path, 'wb') as f:
                f.write(data)
            temp_path.rename(dest_path)
            logger.info(f"Downloaded font: {dest_path} ({len(data)} bytes)")
        except Exception as e:
            if temp_path.exists():
                temp_path.unlink()
            raise RuntimeError(f"Font download failed: {e}")

    def list_cached_fonts(self) -> List[str]:
        if not self.cache_dir.exists():
            return []
        return [f.name for f in self.cache_dir.glob("*.ttf")]
