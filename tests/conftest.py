import pytest

from bibliotheca.audit import MemoryAuditLog
from bibliotheca.domain import Book
from bibliotheca.hashing import Pbkdf2PasswordHasher
from bibliotheca.repositories import BookRepo, UserRepo
from bibliotheca.services import CatalogService, IdentityService
from bibliotheca.sqlite_repositories import SqliteDatabase

# Low cost keeps the suite fast; production default is far higher.
TEST_ITERATIONS = 1_000


@pytest.fixture
def audit():
    return MemoryAuditLog()


@pytest.fixture
def hasher():
    return Pbkdf2PasswordHasher(iterations=TEST_ITERATIONS)


@pytest.fixture
def catalog(audit):
    return CatalogService(BookRepo(), audit)


@pytest.fixture
def identity(hasher, audit):
    return IdentityService(UserRepo(), hasher, audit)


@pytest.fixture
def sqlite_db(tmp_path):
    return SqliteDatabase(tmp_path / "library.db")


@pytest.fixture
def make_book():
    def _make(isbn="123", title="X", author="Anon", category_id="C1", total=0, available=0):
        return Book(
            isbn=isbn,
            title=title,
            author=author,
            category_id=category_id,
            copies_total=total,
            copies_available=available,
        )

    return _make
