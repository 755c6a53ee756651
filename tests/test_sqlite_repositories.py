import pytest

from bibliotheca.domain import Book, Role, User
from bibliotheca.errors import (
    CopyCountViolation,
    DuplicateId,
    DuplicateIdError,
    DuplicateISBN,
    DuplicateKeyError,
    DuplicateLogin,
    StorageError,
)
from bibliotheca.services import CatalogService, IdentityService
from bibliotheca.sqlite_repositories import SqliteBookRepo, SqliteDatabase, SqliteUserRepo


def _book(book_id="bk_1", isbn="123", total=2, available=2):
    return Book(
        book_id=book_id,
        isbn=isbn,
        title="Dune",
        author="Frank Herbert",
        category_id="sf",
        copies_total=total,
        copies_available=available,
    )


def test_book_round_trip_and_search(sqlite_db):
    repo = SqliteBookRepo(sqlite_db)
    repo.save(_book())

    assert repo.exists_by_isbn("123")
    assert repo.get("bk_1") == _book()
    assert repo.get_by_isbn("123").book_id == "bk_1"
    assert [b.book_id for b in repo.search(title="DUN")] == ["bk_1"]
    assert repo.search(author="tolkien") == []
    assert [b.book_id for b in repo.search(category_id="sf", available=True)] == ["bk_1"]


def test_unique_isbn_constraint(sqlite_db):
    repo = SqliteBookRepo(sqlite_db)
    repo.save(_book())

    with pytest.raises(DuplicateKeyError):
        repo.save(_book(book_id="bk_2"))


def test_increment_is_atomic_and_checked(sqlite_db):
    repo = SqliteBookRepo(sqlite_db)
    repo.save(_book(total=1, available=1))

    assert repo.increment_copies("bk_1", total=3, available=3).copies_total == 4
    with pytest.raises(CopyCountViolation):
        repo.increment_copies("bk_1", total=0, available=1)
    with pytest.raises(StorageError):
        repo.increment_copies("bk_missing", total=1, available=1)
    assert repo.get("bk_1").copies_available == 4


def test_update_and_delete(sqlite_db):
    repo = SqliteBookRepo(sqlite_db)
    repo.save(_book())
    book = repo.get("bk_1")
    book.title = "Dune Messiah"
    repo.update(book)

    assert repo.get("bk_1").title == "Dune Messiah"
    repo.delete("bk_1")
    assert repo.list_all() == []
    with pytest.raises(StorageError):
        repo.update(book)


def test_user_repo(sqlite_db):
    repo = SqliteUserRepo(sqlite_db)
    repo.save(User(user_id="usr_1", login="alice", role=Role.ADMIN, password_hash="h"))

    stored = repo.get_by_login("alice")
    assert stored.role is Role.ADMIN
    assert stored.active is True
    assert stored.password_hash == "h"
    assert repo.exists_by_login("alice")
    with pytest.raises(DuplicateKeyError):
        repo.save(User(user_id="usr_2", login="alice"))

    stored.active = False
    repo.update(stored)
    assert repo.get("usr_1").active is False
    repo.delete("usr_1")
    assert repo.list_all() == []


def test_services_on_sqlite(sqlite_db, hasher, audit):
    catalog = CatalogService(SqliteBookRepo(sqlite_db), audit)
    identity = IdentityService(SqliteUserRepo(sqlite_db), hasher, audit)

    book = catalog.add_book(_book(book_id="", total=2, available=1))
    assert catalog.add_copies(book.book_id, 3).copies_available == 4
    with pytest.raises(DuplicateISBN):
        catalog.add_book(_book(book_id=""))

    identity.create_user(User(login="alice"), "secret")
    assert identity.authenticate("alice", "secret").role is Role.USER


def test_data_survives_new_connection(tmp_path):
    path = tmp_path / "library.db"
    SqliteBookRepo(SqliteDatabase(path)).save(_book())

    assert SqliteBookRepo(SqliteDatabase(path)).get("bk_1").title == "Dune"


def test_search_folds_accented_text(sqlite_db):
    repo = SqliteBookRepo(sqlite_db)
    book = _book()
    book.title = "Les Misérables"
    book.author = "Émile Zola"
    repo.save(book)

    assert [b.book_id for b in repo.search(title="MISÉRABLES")] == ["bk_1"]
    assert [b.book_id for b in repo.search(author="émile")] == ["bk_1"]
    assert repo.search(title="miserables") == []


def test_id_clash_is_not_a_key_clash(sqlite_db):
    books = SqliteBookRepo(sqlite_db)
    users = SqliteUserRepo(sqlite_db)
    books.save(_book())
    users.save(User(user_id="usr_1", login="alice"))

    with pytest.raises(DuplicateIdError):
        books.save(_book(isbn="456"))
    with pytest.raises(DuplicateIdError):
        users.save(User(user_id="usr_1", login="bob"))


def test_services_report_duplicate_ids_on_sqlite(sqlite_db, hasher):
    catalog = CatalogService(SqliteBookRepo(sqlite_db))
    identity = IdentityService(SqliteUserRepo(sqlite_db), hasher)
    catalog.add_book(_book())
    identity.create_user(User(user_id="usr_1", login="alice"), "pw")

    with pytest.raises(DuplicateId, match="book id bk_1"):
        catalog.add_book(_book(isbn="456"))
    with pytest.raises(DuplicateId, match="user id usr_1"):
        identity.create_user(User(user_id="usr_1", login="bob"), "pw")

    assert catalog.get_book_by_isbn("456") is None
    assert identity.get_user_by_login("bob") is None


def test_services_map_racing_inserts_by_column(sqlite_db, hasher):
    """A row written between the service's checks and its insert."""

    class LateBookRepo(SqliteBookRepo):
        def exists_by_isbn(self, isbn):
            return False

        def get(self, book_id):
            return None

    class LateUserRepo(SqliteUserRepo):
        def exists_by_login(self, login):
            return False

        def get(self, user_id):
            return None

    catalog = CatalogService(LateBookRepo(sqlite_db))
    identity = IdentityService(LateUserRepo(sqlite_db), hasher)
    catalog.add_book(_book())
    identity.create_user(User(user_id="usr_1", login="alice"), "pw")

    with pytest.raises(DuplicateId):
        catalog.add_book(_book(isbn="456"))
    with pytest.raises(DuplicateISBN):
        catalog.add_book(_book(book_id="bk_2"))
    with pytest.raises(DuplicateId):
        identity.create_user(User(user_id="usr_1", login="bob"), "pw")
    with pytest.raises(DuplicateLogin):
        identity.create_user(User(user_id="usr_2", login="alice"), "pw")
