import os
import sys
from unittest.mock import patch

import pytest

# Test environment configuration
os.environ.setdefault("TEST_MODE", "1")
os.environ.setdefault("DEFAULT_BOOK_TITLE", "Catch-22")
os.environ.setdefault("DEFAULT_BOOK_AUTHOR", "Joseph Heller")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Ensure the project root is importable when pytest changes CWD
from pathlib import Path

PROJECT_ROOT = str(Path(__file__).resolve().parents[1])
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from book_club.app import app as flask_app  # noqa: E402
from book_club.app import get_storage  # noqa: E402
from book_club.errors import UpstreamLookupFailure  # noqa: E402


@pytest.fixture(autouse=True)
def _reset_storage():
    storage = get_storage()
    storage.clear()
    yield
    storage.clear()


@pytest.fixture()
def client():
    flask_app.config["TESTING"] = True
    with flask_app.test_client() as client:
        yield client


@pytest.fixture()
def no_lookup():
    """Make the Google Books search fail so pages render the fallback record."""
    with patch(
        "book_club.services.book_lookup._search_google_books",
        side_effect=UpstreamLookupFailure("offline"),
    ) as mock_search:
        yield mock_search
