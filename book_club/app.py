import asyncio
import json
import logging
import os
from typing import Any, Mapping, Optional, Tuple, Union

import click
from flask import Flask, Response, jsonify, render_template, request

from book_club import config
from book_club.errors import BookClubError, StorageUnavailable
from book_club.services.book_lookup import resolve_book_details
from book_club.services.cover_sources import derive_candidates, load_first_working
from book_club.services.current_book import load_current_book, save_current_book
from book_club.services.storage import MockStorage, SQLAlchemyStorage, db

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("book_club")

app = Flask(__name__)

# In test mode the current book lives in memory; otherwise DB_URL selects
# the database. With neither, updates fail with "Storage not available".
TEST_MODE = config.is_test_mode()
DB_URL = None if TEST_MODE else config.database_url()

if DB_URL:
    app.config["SQLALCHEMY_DATABASE_URI"] = DB_URL
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    db.init_app(app)
    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            logger.error(f"Could not create tables at startup: {e}")

_mock_storage = MockStorage()


def get_storage() -> Optional[Union[MockStorage, SQLAlchemyStorage]]:
    """Return the configured key-value store, or None if there isn't one."""
    if TEST_MODE:
        return _mock_storage
    if DB_URL:
        return SQLAlchemyStorage()
    return None


# -----------------------------
# Helpers
# -----------------------------

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _with_cors(response: Response) -> Response:
    response.headers.update(CORS_HEADERS)
    return response


def _json_error(message: str, status: int) -> Response:
    response = jsonify({"error": message})
    response.status_code = status
    return _with_cors(response)


def current_selection(overrides: Optional[Mapping[str, Any]] = None) -> Tuple[str, str]:
    """Work out which book to show.

    The configured default is replaced by the stored record, which is in turn
    replaced by `title` and `author` overrides when both are given.
    """
    title, author = config.DEFAULT_BOOK_TITLE, config.DEFAULT_BOOK_AUTHOR

    try:
        record = load_current_book(get_storage())
        if record:
            title, author = record.title, record.author
            logger.debug(f"Loaded current book from storage: '{title}'")
    except StorageUnavailable:
        logger.debug("No storage configured, showing the default book")
    except Exception:
        logger.exception("Failed to read the current book, showing the default")

    if overrides:
        override_title = (overrides.get("title") or "").strip()
        override_author = (overrides.get("author") or "").strip()
        if override_title and override_author:
            title, author = override_title, override_author
            logger.debug(f"Using query overrides: '{title}' by {author}")

    return title, author


@app.errorhandler(BookClubError)
def handle_book_club_error(error: BookClubError):
    return _json_error(error.message, error.status_code)


# -----------------------------
# Routes
# -----------------------------


@app.route("/", methods=["GET"])
def home():
    title, author = current_selection(request.args)
    detail = resolve_book_details(title, author)
    return render_template(
        "index.html",
        book=detail,
        book_data=detail.to_dict(),
        cover_sources=derive_candidates(detail),
    )


@app.route("/book", methods=["POST", "OPTIONS"])
@app.route("/api/book", methods=["POST", "OPTIONS"])
def update_book():
    if request.method == "OPTIONS":
        response = _with_cors(app.make_response(("", 204)))
        response.headers["Access-Control-Max-Age"] = "86400"
        return response

    payload = request.get_json(silent=True)
    logger.info("Received book update request")
    try:
        record = save_current_book(get_storage(), payload)
    except BookClubError:
        raise
    except Exception as e:
        logger.exception("Error storing the current book")
        return _json_error(f"Failed to update book: {e}", 500)

    return _with_cors(jsonify({"success": True, "book": record.to_dict()}))


@app.route("/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "storage": get_storage() is not None})


# -----------------------------
# CLI
# -----------------------------


@app.cli.command("init-db")
def init_db_command():
    """Drop and re-create the key-value table."""
    if not DB_URL:
        raise click.ClickException("DB_URL is not set (or TEST_MODE=1).")
    db.drop_all()
    db.create_all()
    click.echo("Database re-initialized (the current book was cleared).")


@app.cli.command("set-book")
@click.argument("title")
@click.argument("author")
def set_book_command(title, author):
    """Set the club's current book."""
    try:
        record = save_current_book(get_storage(), {"title": title, "author": author})
    except BookClubError as e:
        raise click.ClickException(e.message) from e
    click.echo(f"Current book: {record.title} by {record.author}")


@app.cli.command("show-book")
def show_book_command():
    """Print the resolved details for the current book as JSON."""
    title, author = current_selection()
    detail = resolve_book_details(title, author)
    click.echo(json.dumps(detail.to_dict(), indent=2))


@app.cli.command("check-cover")
@click.option("--timeout", type=float, default=config.COVER_PROBE_TIMEOUT)
def check_cover_command(timeout):
    """Find the first cover image that loads for the current book."""
    title, author = current_selection()
    detail = resolve_book_details(title, author)
    sources = derive_candidates(detail)
    click.echo(f"Trying {len(sources)} cover source(s) for '{detail.title}'")
    url = asyncio.run(load_first_working(sources, timeout=timeout))
    if url:
        click.echo(url)
    else:
        click.echo("No cover found; the page will show the text placeholder.")


if __name__ == "__main__":
    debug_mode = os.environ.get("FLASK_DEBUG", "False").lower() == "true"
    app.run(debug=debug_mode)
