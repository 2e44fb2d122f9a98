"""JSON writer: the translated layout plus its render placements."""

from dataclasses import asdict
from typing import List, Optional
import json

from ..core.config import RenderConfig
from ..core.models import Direction, Layout
from .base import DocumentWriter, register_writer
from .pagination import Placement, page_count


@register_writer("json")
class JsonRenderer(DocumentWriter):
    """Serialize the layout for inspection or downstream tooling."""

    def __init__(self, config: Optional[RenderConfig] = None, indent: int = 2):
        self.config = config or RenderConfig()
        self.indent = indent

    def write(self, layout: Layout, placements: List[Placement], direction: Direction) -> bytes:
        data = layout.to_dict()
        data["render"] = {
            "direction": direction.value,
            "page_count": page_count(placements, layout.page_count),
            "placements": [
                dict(asdict(p), row_heights=list(p.row_heights)) for p in placements
            ],
        }
        text = json.dumps(data, indent=self.indent, ensure_ascii=False, sort_keys=True, default=str)
        return text.encode("utf-8")
