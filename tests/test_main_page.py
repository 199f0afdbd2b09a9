from unittest.mock import patch

from book_club.app import current_selection, get_storage
from book_club.models import BookRecord, ResolvedBookDetail
from book_club.services.current_book import CURRENT_BOOK_KEY


def _detail(title="Catch-22", author="Joseph Heller", **kwargs):
    return ResolvedBookDetail(
        title=title, author=author, description="About the book.", **kwargs
    )


def test_home_renders_default_book_when_everything_is_down(client, no_lookup):
    response = client.get("/")
    assert response.status_code == 200
    assert b"Catch-22" in response.data
    assert b"Joseph Heller" in response.data
    assert b"A compelling read selected for our literary society." in response.data
    no_lookup.assert_called_once_with("Catch-22", "Joseph Heller")


def test_home_uses_stored_book(client, no_lookup):
    client.post("/book", json={"title": "Middlemarch", "author": "George Eliot"})
    response = client.get("/")
    assert b"Middlemarch" in response.data
    no_lookup.assert_called_once_with("Middlemarch", "George Eliot")


def test_query_parameters_override_stored_book(client, no_lookup):
    client.post("/book", json={"title": "Middlemarch", "author": "George Eliot"})
    response = client.get("/?title=Dune&author=Frank+Herbert")
    assert b"Dune" in response.data
    no_lookup.assert_called_once_with("Dune", "Frank Herbert")


def test_single_query_parameter_is_ignored(client, no_lookup):
    client.post("/book", json={"title": "Middlemarch", "author": "George Eliot"})
    client.get("/?title=Dune")
    no_lookup.assert_called_once_with("Middlemarch", "George Eliot")


def test_unreadable_stored_value_falls_back_to_default(client, no_lookup):
    get_storage().put(CURRENT_BOOK_KEY, "{not json")
    response = client.get("/")
    assert response.status_code == 200
    no_lookup.assert_called_once_with("Catch-22", "Joseph Heller")


def test_page_renders_without_storage(client, no_lookup):
    with patch("book_club.app.get_storage", return_value=None):
        response = client.get("/")
    assert response.status_code == 200
    assert b"Catch-22" in response.data


def test_page_renders_when_storage_read_fails(client, no_lookup):
    class BrokenStorage:
        def get(self, key):
            raise RuntimeError("connection reset")

    with patch("book_club.app.get_storage", return_value=BrokenStorage()):
        response = client.get("/")
    assert response.status_code == 200
    assert b"Catch-22" in response.data


def test_page_escapes_book_text(client, no_lookup):
    response = client.get("/?title=<script>alert(1)</script>&author=Eve")
    assert b"<script>alert(1)</script>" not in response.data
    assert b"&lt;script&gt;" in response.data


def test_page_embeds_details_and_cover_sources(client):
    detail = _detail(
        isbn="9780684833392",
        alternate_isbns=["0684833395"],
        thumbnail="http://books.google.com/c?id=1&zoom=1",
    )
    with patch("book_club.app.resolve_book_details", return_value=detail):
        response = client.get("/")

    body = response.get_data(as_text=True)
    assert '"alternateIsbns": ["0684833395"]' in body
    assert "http://books.google.com/c?id=1\\u0026zoom=0" in body
    assert "/isbn/9780684833392-L.jpg" in body
    assert "/isbn/0684833395-M.jpg" in body


def test_page_restores_last_submission_from_local_storage(client, no_lookup):
    body = client.get("/").get_data(as_text=True)
    assert "const SAVED_BOOK_KEY = 'book_club_current_book';" in body
    assert "localStorage.getItem(SAVED_BOOK_KEY)" in body
    assert "localStorage.setItem(SAVED_BOOK_KEY" in body
    assert "this.loadSavedBook();" in body


def test_rendering_twice_resolves_identical_details(client):
    calls = []

    def fake_resolve(title, author):
        detail = _detail(title=title, author=author, isbn="1")
        calls.append(detail)
        return detail

    client.post("/book", json={"title": "Emma", "author": "Jane Austen"})
    with patch("book_club.app.resolve_book_details", side_effect=fake_resolve):
        first = client.get("/")
        second = client.get("/")

    assert calls[0] == calls[1]
    assert first.data == second.data


def test_current_selection_without_request_context():
    get_storage().put(
        CURRENT_BOOK_KEY, BookRecord.create("Persuasion", "Jane Austen").to_json()
    )
    assert current_selection() == ("Persuasion", "Jane Austen")
    assert current_selection({"title": " Dune ", "author": "Herbert"}) == (
        "Dune",
        "Herbert",
    )
