import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import requests

from book_club import config
from book_club.errors import UpstreamLookupFailure
from book_club.models import ResolvedBookDetail, VolumeCandidate

logger = logging.getLogger("book_club")

GOOGLE_BOOKS_API = "https://www.googleapis.com/books/v1/volumes"
MAX_RESULTS = 10
DEFAULT_DESCRIPTION = "A compelling read selected for our literary society."

# A description longer than this makes a search result "preferred"
MIN_PREFERRED_DESCRIPTION = 100

_TAG_RE = re.compile(r"<[^>]*>")

# Shared session for connection pooling and consistent headers.
_session: Optional[requests.Session] = None


def _get_session() -> requests.Session:
    """Get or create a shared requests session with a proper User-Agent."""
    global _session
    if _session is None:
        _session = requests.Session()
        _session.headers.update(
            {
                "User-Agent": "BookClub/1.0 (currently reading page)",
                "Accept": "application/json",
            }
        )
    return _session


def _phrase(value: str) -> str:
    """Make a value safe to wrap in an exact-phrase filter."""
    return " ".join(value.replace('"', " ").split())


def build_search_query(title: str, author: str) -> str:
    return f'intitle:"{_phrase(title)}" inauthor:"{_phrase(author)}"'


def strip_tags(text: str) -> str:
    """Remove anything that looks like a markup tag."""
    if "<" not in text:
        return text
    return _TAG_RE.sub("", text)


def fallback_detail(title: str, author: str) -> ResolvedBookDetail:
    """The record used when the lookup yields nothing usable."""
    return ResolvedBookDetail(
        title=title,
        author=author,
        description=DEFAULT_DESCRIPTION,
        isbn=None,
        alternate_isbns=[],
        thumbnail=None,
    )


def _search_google_books(title: str, author: str) -> List[Dict[str, Any]]:
    """Run the volumes search and return the raw `items` list.

    Raises UpstreamLookupFailure on any transport, status or payload problem.
    """
    session = _get_session()
    params: Dict[str, str] = {
        "q": build_search_query(title, author),
        "maxResults": str(MAX_RESULTS),
    }
    if config.GOOGLE_BOOKS_API_KEY:
        params["key"] = config.GOOGLE_BOOKS_API_KEY

    try:
        response = session.get(
            GOOGLE_BOOKS_API, params=params, timeout=config.LOOKUP_TIMEOUT
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        raise UpstreamLookupFailure(f"Google Books search failed: {e}") from e

    if not isinstance(data, dict):
        raise UpstreamLookupFailure("Google Books returned an unexpected payload")
    items = data.get("items") or []
    if not isinstance(items, list):
        raise UpstreamLookupFailure("Google Books returned a malformed item list")
    return items


def is_preferred(candidate: VolumeCandidate) -> bool:
    has_description = bool(
        candidate.description
        and len(candidate.description) > MIN_PREFERRED_DESCRIPTION
    )
    has_identifier = len(candidate.industry_identifiers) > 0
    return has_description or has_identifier


def select_candidate(candidates: List[VolumeCandidate]) -> VolumeCandidate:
    """Pick the first preferred candidate in API order, else the first one.

    Preferred candidates are not scored against each other.
    """
    for candidate in candidates:
        if is_preferred(candidate):
            return candidate
    return candidates[0]


def _choose_isbns(candidate: VolumeCandidate) -> Tuple[Optional[str], List[str]]:
    identifiers = candidate.industry_identifiers
    isbn13 = next((i.identifier for i in identifiers if i.type == "ISBN_13"), None)
    isbn10 = next((i.identifier for i in identifiers if i.type == "ISBN_10"), None)
    isbn = isbn13 or isbn10

    alternates = [
        i.identifier
        for i in identifiers
        if "ISBN" in i.type and i.identifier != isbn
    ]
    return isbn, alternates


def normalize_candidate(
    candidate: VolumeCandidate, title: str, author: str
) -> ResolvedBookDetail:
    """Turn the selected search result into a ResolvedBookDetail."""
    description = strip_tags(candidate.description or DEFAULT_DESCRIPTION)
    isbn, alternates = _choose_isbns(candidate)

    return ResolvedBookDetail(
        title=candidate.title or title,
        author=", ".join(candidate.authors) if candidate.authors else author,
        description=description,
        isbn=isbn,
        alternate_isbns=alternates,
        published_date=candidate.published_date,
        page_count=candidate.page_count,
        categories=candidate.categories,
        thumbnail=candidate.thumbnail,
    )


def resolve_book_details(title: str, author: str) -> ResolvedBookDetail:
    """Look up display metadata for a title/author pair.

    Never raises: any failure, or an empty result set, produces the
    fallback record built from the inputs.
    """
    try:
        items = _search_google_books(title, author)
    except UpstreamLookupFailure as e:
        logger.warning(f"{e}; using fallback details for '{title}'")
        return fallback_detail(title, author)
    except Exception:
        logger.exception(f"Unexpected error looking up '{title}' by {author}")
        return fallback_detail(title, author)

    if not items:
        logger.info(f"No Google Books results for '{title}' by {author}")
        return fallback_detail(title, author)

    candidates = [VolumeCandidate.from_api(item) for item in items]
    selected = select_candidate(candidates)
    logger.debug(
        f"Selected '{selected.title}' out of {len(candidates)} candidate(s) "
        f"for '{title}'"
    )
    return normalize_candidate(selected, title, author)
