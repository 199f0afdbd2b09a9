"""Cover image candidates and the sequential loader that picks one.

Candidates are ordered best-first: the search thumbnail (upgraded, then as
returned), then ISBN-keyed covers for the primary ISBN, then for each
alternate ISBN. Probing walks the list one URL at a time and stops at the
first image that is larger than a tracking pixel.
"""

import asyncio
import logging
import re
from io import BytesIO
from typing import Iterable, List, Optional, Sequence, Tuple

import httpx
from PIL import Image

from book_club import config
from book_club.models import ResolvedBookDetail

logger = logging.getLogger("book_club.covers")

LARGE = "L"
MEDIUM = "M"

_ZOOM_RE = re.compile(r"(?<=[?&])zoom=1(?=&|#|$)")


def upgrade_thumbnail(url: str) -> str:
    """Ask Google Books for a bigger rendition by switching zoom=1 to zoom=0."""
    return _ZOOM_RE.sub("zoom=0", url)


def isbn_cover_url(isbn: str, size: str, service: Optional[str] = None) -> str:
    base = (service or config.COVER_SERVICE_URL).rstrip("/")
    return f"{base}/isbn/{isbn}-{size}.jpg"


def derive_candidates(
    detail: ResolvedBookDetail,
    alternate_sizes: Sequence[str] = (LARGE, MEDIUM),
    service: Optional[str] = None,
) -> List[str]:
    """Ordered list of cover URLs to try for a book.

    Duplicates are kept; probing stops at the first success anyway.
    """
    sources: List[Optional[str]] = []

    if detail.thumbnail:
        sources.append(upgrade_thumbnail(detail.thumbnail))
        sources.append(detail.thumbnail)

    if detail.isbn:
        sources.append(isbn_cover_url(detail.isbn, LARGE, service))
        sources.append(isbn_cover_url(detail.isbn, MEDIUM, service))

    for isbn in detail.alternate_isbns or []:
        if not isbn:
            continue
        for size in alternate_sizes:
            sources.append(isbn_cover_url(isbn, size, service))

    return [s for s in sources if s]


def image_dimensions(content: bytes) -> Optional[Tuple[int, int]]:
    """Return (width, height) of an encoded image, or None if it can't be read."""
    try:
        with Image.open(BytesIO(content)) as img:
            return img.size
    except (OSError, ValueError, Image.DecompressionBombError):
        return None


async def probe_image(
    client: httpx.AsyncClient,
    url: str,
    min_dimension: int = config.COVER_MIN_DIMENSION,
) -> bool:
    """Fetch one candidate and check it is a real cover, not a placeholder."""
    try:
        response = await client.get(url)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug(f"Cover probe failed for {url}: {e}")
        return False

    if response.status_code != 200:
        logger.debug(f"Cover probe for {url} returned {response.status_code}")
        return False

    size = image_dimensions(response.content)
    if size is None:
        logger.debug(f"Cover probe for {url} did not return an image")
        return False

    width, height = size
    if width > min_dimension and height > min_dimension:
        return True

    logger.debug(f"Rejected placeholder cover {url} ({width}x{height})")
    return False


async def load_first_working(
    candidates: Iterable[str],
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = config.COVER_PROBE_TIMEOUT,
    min_dimension: int = config.COVER_MIN_DIMENSION,
) -> Optional[str]:
    """Probe candidates in order and return the first usable cover URL.

    Each attempt is abandoned after `timeout` seconds and its late result is
    discarded. Returns None if every candidate fails or there are none; the
    caller then shows the text placeholder.
    """
    urls = [c for c in candidates if c]
    if not urls:
        logger.info("No cover sources available")
        return None

    owns_client = client is None
    if client is None:
        client = httpx.AsyncClient(follow_redirects=True, timeout=timeout)

    try:
        for url in urls:
            try:
                ok = await asyncio.wait_for(
                    probe_image(client, url, min_dimension), timeout=timeout
                )
            except asyncio.TimeoutError:
                logger.debug(f"Cover probe timed out after {timeout}s: {url}")
                continue
            if ok:
                logger.info(f"Using cover {url}")
                return url
    finally:
        if owns_client:
            await client.aclose()

    logger.info(f"All {len(urls)} cover sources failed")
    return None
