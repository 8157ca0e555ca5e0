"""
列表分页（内存列表切片）
"""
import math
from dataclasses import dataclass, field
from typing import Any, List


@dataclass
class Page:
    items: List[Any] = field(default_factory=list)
    page: int = 1
    per_page: int = 5
    total: int = 0
    total_pages: int = 0
    start: int = 0  # 展示用，从 1 开始；空列表时为 0
    end: int = 0

    def meta(self) -> dict:
        return {
            "page": self.page,
            "per_page": self.per_page,
            "total": self.total,
            "total_pages": self.total_pages,
            "start": self.start,
            "end": self.end,
        }


def paginate(items: List[Any], page: int = 1, per_page: int = 5) -> Page:
    """页码越界时夹到 [1, total_pages]"""
    per_page = max(1, per_page)
    total = len(items)
    total_pages = math.ceil(total / per_page)
    page = min(max(1, page), max(1, total_pages))
    start_index = (page - 1) * per_page
    end_index = min(start_index + per_page, total)
    return Page(
        items=items[start_index:end_index],
        page=page,
        per_page=per_page,
        total=total,
        total_pages=total_pages,
        start=start_index + 1 if total else 0,
        end=end_index,
    )
