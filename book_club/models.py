"""Data types shared by the resolver, the cover sequencer and the web layer."""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


@dataclass
class BookRecord:
    """The club's current selection, as stored under the "current_book" key."""

    title: str
    author: str
    updated_at: str

    @classmethod
    def create(cls, title: str, author: str) -> "BookRecord":
        return cls(
            title=title,
            author=author,
            updated_at=datetime.now(timezone.utc).isoformat(),
        )

    def to_dict(self) -> Dict[str, str]:
        """Convert to dictionary for JSON serialization."""
        return {
            "title": self.title,
            "author": self.author,
            "updatedAt": self.updated_at,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str) -> "BookRecord":
        data = json.loads(raw)
        return cls(
            title=data["title"],
            author=data["author"],
            updated_at=data.get("updatedAt") or "",
        )


@dataclass
class IndustryIdentifier:
    type: str
    identifier: str


def _str_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _str_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, str)]


@dataclass
class VolumeCandidate:
    """One Google Books search result, reduced to the fields we use."""

    title: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    description: Optional[str] = None
    industry_identifiers: List[IndustryIdentifier] = field(default_factory=list)
    published_date: Optional[str] = None
    page_count: Optional[int] = None
    categories: Optional[List[str]] = None
    thumbnail: Optional[str] = None

    @classmethod
    def from_api(cls, item: Any) -> "VolumeCandidate":
        """Build a candidate from a raw `items[]` entry.

        The payload is loosely typed: anything missing or of the wrong type
        becomes None (or an empty list) rather than an error.
        """
        info = item.get("volumeInfo") if isinstance(item, dict) else None
        if not isinstance(info, dict):
            info = {}

        identifiers = []
        raw_ids = info.get("industryIdentifiers")
        if isinstance(raw_ids, list):
            for entry in raw_ids:
                if not isinstance(entry, dict):
                    continue
                id_type = _str_or_none(entry.get("type"))
                value = _str_or_none(entry.get("identifier"))
                if id_type and value:
                    identifiers.append(IndustryIdentifier(id_type, value))

        page_count = info.get("pageCount")
        if isinstance(page_count, bool) or not isinstance(page_count, int):
            page_count = None

        categories = info.get("categories")
        image_links = info.get("imageLinks")
        if not isinstance(image_links, dict):
            image_links = {}

        return cls(
            title=_str_or_none(info.get("title")),
            authors=_str_list(info.get("authors")),
            description=_str_or_none(info.get("description")),
            industry_identifiers=identifiers,
            published_date=_str_or_none(info.get("publishedDate")),
            page_count=page_count,
            categories=_str_list(categories) if isinstance(categories, list) else None,
            thumbnail=_str_or_none(image_links.get("thumbnail")),
        )


@dataclass
class ResolvedBookDetail:
    """Render-ready metadata for the current book. Computed per request."""

    title: str
    author: str
    description: str
    isbn: Optional[str] = None
    alternate_isbns: List[str] = field(default_factory=list)
    published_date: Optional[str] = None
    page_count: Optional[int] = None
    categories: Optional[List[str]] = None
    thumbnail: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with the camelCase keys the page script expects."""
        return {
            "title": self.title,
            "author": self.author,
            "description": self.description,
            "isbn": self.isbn,
            "alternateIsbns": list(self.alternate_isbns),
            "publishedDate": self.published_date,
            "pageCount": self.page_count,
            "categories": self.categories,
            "thumbnail": self.thumbnail,
        }
