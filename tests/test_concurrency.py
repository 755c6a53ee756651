from concurrent.futures import ThreadPoolExecutor

import pytest

from bibliotheca.domain import User
from bibliotheca.errors import DuplicateISBN, DuplicateLogin, NoCopiesAvailable
from bibliotheca.repositories import BookRepo, UserRepo
from bibliotheca.services import CatalogService, IdentityService
from bibliotheca.sqlite_repositories import SqliteBookRepo, SqliteUserRepo

WORKERS = 8
TASKS = 20


@pytest.fixture(params=["memory", "sqlite"])
def repos(request):
    if request.param == "memory":
        return BookRepo(), UserRepo()
    db = request.getfixturevalue("sqlite_db")
    return SqliteBookRepo(db), SqliteUserRepo(db)


def _run(task, count=TASKS):
    """Run ``task(i)`` from several threads; return results and raised errors."""
    results, errors = [], []

    def call(i):
        try:
            return task(i), None
        except Exception as exc:
            return None, exc

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        for result, error in pool.map(call, range(count)):
            if error is None:
                results.append(result)
            else:
                errors.append(error)
    return results, errors


def test_parallel_add_copies_loses_no_update(repos, make_book):
    catalog = CatalogService(repos[0])
    book = catalog.add_book(make_book(total=2, available=1))

    _, errors = _run(lambda i: catalog.add_copies(book.book_id, 1))

    assert errors == []
    stored = catalog.get_book(book.book_id)
    assert stored.copies_total == 2 + TASKS
    assert stored.copies_available == 1 + TASKS


def test_parallel_lend_never_overdraws(repos, make_book):
    catalog = CatalogService(repos[0])
    book = catalog.add_book(make_book(total=5, available=5))

    lent, errors = _run(lambda i: catalog.lend_copy(book.book_id))

    assert len(lent) == 5
    assert len(errors) == TASKS - 5
    assert all(isinstance(e, NoCopiesAvailable) for e in errors)
    assert catalog.get_book(book.book_id).copies_available == 0


def test_parallel_add_book_same_isbn_stores_one(repos, make_book):
    catalog = CatalogService(repos[0])

    stored, errors = _run(lambda i: catalog.add_book(make_book(isbn="9780441172719", title=f"Dune {i}")))

    assert len(stored) == 1
    assert len(errors) == TASKS - 1
    assert all(isinstance(e, DuplicateISBN) for e in errors)
    assert len(catalog.list_books()) == 1


def test_parallel_create_user_same_login_stores_one(repos, hasher):
    identity = IdentityService(repos[1], hasher)

    created, errors = _run(lambda i: identity.create_user(User(login="alice"), f"pw{i}"))

    assert len(created) == 1
    assert len(errors) == TASKS - 1
    assert all(isinstance(e, DuplicateLogin) for e in errors)
    assert [u.login for u in identity.list_users()] == ["alice"]
