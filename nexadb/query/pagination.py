"""
NexaDB Pagination
=================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Paginated:
    """A page of results with its meta block and navigation links."""

    data: List[Any]
    meta: Dict[str, Any] = field(default_factory=dict)
    links: Dict[str, Optional[str]] = field(default_factory=dict)

    def __iter__(self):
        return iter(self.data)

    def __len__(self):
        return len(self.data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": [item.to_dict() if hasattr(item, "to_dict") else item for item in self.data],
            "meta": dict(self.meta),
            "links": dict(self.links),
        }


def page_url(path: str, **params: Any) -> str:
    query = "&".join(f"{key}={value}" for key, value in params.items())
    return f"{path}?{query}"
