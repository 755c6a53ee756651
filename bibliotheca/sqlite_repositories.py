"""
SQLite-backed repositories.

Drop-in replacements for the in-memory ``BookRepo`` and ``UserRepo``.
Uniqueness of ISBN and login is enforced by ``UNIQUE`` constraints and the
copy-count invariant by a ``CHECK`` constraint, so concurrent writers
cannot slip past the services' check-then-insert. Copy adjustments run as a
single ``UPDATE ... SET n = n + ?`` statement and never lose updates.

Each call opens its own short-lived connection. Every ``sqlite3`` error is
re-raised as a ``StorageError`` subclass.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Union

from .domain import Book, Role, User
from .errors import CopyCountViolation, DuplicateIdError, DuplicateKeyError, StorageError

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS books (
    book_id TEXT PRIMARY KEY,
    isbn TEXT NOT NULL UNIQUE,
    title TEXT NOT NULL,
    author TEXT NOT NULL,
    category_id TEXT,
    copies_total INTEGER NOT NULL DEFAULT 0,
    copies_available INTEGER NOT NULL DEFAULT 0,
    CHECK (copies_available >= 0 AND copies_available <= copies_total)
);
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    login TEXT NOT NULL UNIQUE,
    name TEXT NOT NULL DEFAULT '',
    email TEXT NOT NULL DEFAULT '',
    role TEXT NOT NULL CHECK (role IN ('ADMIN', 'USER')),
    active INTEGER NOT NULL DEFAULT 1,
    password_hash TEXT
);
"""


ID_COLUMNS = ("books.book_id", "users.user_id")


def _casefold(value: Optional[str]) -> Optional[str]:
    return value.casefold() if value is not None else None


class SqliteDatabase:
    """Connection factory and schema bootstrap for one SQLite file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = str(path)
        self.init_schema()

    def init_schema(self) -> None:
        with self.connect() as conn:
            conn.executescript(SCHEMA)
        logger.debug("schema ready in %s", self.path)

    @contextmanager
    def connect(self) -> Iterator[sqlite3.Connection]:
        """Yield a connection, commit on success and always close it."""
        try:
            conn = sqlite3.connect(self.path, timeout=10)
        except sqlite3.Error as exc:
            raise StorageError(f"cannot open {self.path}: {exc}") from exc
        conn.row_factory = sqlite3.Row
        # lower() only folds ASCII
        conn.create_function("py_casefold", 1, _casefold, deterministic=True)
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            message = str(exc)
            if "UNIQUE" in message and any(col in message for col in ID_COLUMNS):
                raise DuplicateIdError(message) from exc
            if "UNIQUE" in message:
                raise DuplicateKeyError(message) from exc
            if "CHECK" in message:
                raise CopyCountViolation(message) from exc
            raise StorageError(message) from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

    def fetch_all(self, sql: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(sql, params).fetchall()

    def fetch_one(self, sql: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.connect() as conn:
            return conn.execute(sql, params).fetchone()


def _row_to_book(row: sqlite3.Row) -> Book:
    return Book(
        book_id=row["book_id"],
        isbn=row["isbn"],
        title=row["title"],
        author=row["author"],
        category_id=row["category_id"],
        copies_total=row["copies_total"],
        copies_available=row["copies_available"],
    )


def _row_to_user(row: sqlite3.Row) -> User:
    return User(
        user_id=row["user_id"],
        login=row["login"],
        name=row["name"],
        email=row["email"],
        role=Role(row["role"]),
        active=bool(row["active"]),
        password_hash=row["password_hash"],
    )


class SqliteBookRepo:
    def __init__(self, db: SqliteDatabase) -> None:
        self.db = db

    def exists_by_isbn(self, isbn: str) -> bool:
        return self.db.fetch_one("SELECT 1 FROM books WHERE isbn = ?", (isbn,)) is not None

    def get(self, book_id: str) -> Optional[Book]:
        row = self.db.fetch_one("SELECT * FROM books WHERE book_id = ?", (book_id,))
        return _row_to_book(row) if row else None

    def get_by_isbn(self, isbn: str) -> Optional[Book]:
        row = self.db.fetch_one("SELECT * FROM books WHERE isbn = ?", (isbn,))
        return _row_to_book(row) if row else None

    def list_all(self) -> List[Book]:
        return [_row_to_book(r) for r in self.db.fetch_all("SELECT * FROM books ORDER BY rowid")]

    def search(
        self,
        title: Optional[str] = None,
        author: Optional[str] = None,
        category_id: Optional[str] = None,
        available: Optional[bool] = None,
    ) -> List[Book]:
        clauses: List[str] = []
        params: List[Any] = []
        if title is not None:
            clauses.append("instr(py_casefold(title), py_casefold(?)) > 0")
            params.append(title.strip())
        if author is not None:
            clauses.append("instr(py_casefold(author), py_casefold(?)) > 0")
            params.append(author.strip())
        if category_id is not None:
            clauses.append("category_id = ?")
            params.append(category_id)
        if available is not None:
            clauses.append("copies_available > 0" if available else "copies_available = 0")
        sql = "SELECT * FROM books"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY rowid"
        return [_row_to_book(r) for r in self.db.fetch_all(sql, tuple(params))]

    def save(self, book: Book) -> Book:
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO books (book_id, isbn, title, author, category_id, "
                "copies_total, copies_available) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    book.book_id,
                    book.isbn,
                    book.title,
                    book.author,
                    book.category_id,
                    book.copies_total,
                    book.copies_available,
                ),
            )
        return self.get(book.book_id) or book

    def update(self, book: Book) -> None:
        with self.db.connect() as conn:
            cur = conn.execute(
                "UPDATE books SET isbn = ?, title = ?, author = ?, category_id = ?, "
                "copies_total = ?, copies_available = ? WHERE book_id = ?",
                (
                    book.isbn,
                    book.title,
                    book.author,
                    book.category_id,
                    book.copies_total,
                    book.copies_available,
                    book.book_id,
                ),
            )
            if cur.rowcount == 0:
                raise StorageError(f"book {book.book_id} is not stored")

    def delete(self, book_id: str) -> None:
        with self.db.connect() as conn:
            conn.execute("DELETE FROM books WHERE book_id = ?", (book_id,))

    def increment_copies(self, book_id: str, total: int, available: int) -> Book:
        with self.db.connect() as conn:
            cur = conn.execute(
                "UPDATE books SET copies_total = copies_total + ?, "
                "copies_available = copies_available + ? WHERE book_id = ?",
                (total, available, book_id),
            )
            if cur.rowcount == 0:
                raise StorageError(f"book {book_id} is not stored")
            row = conn.execute("SELECT * FROM books WHERE book_id = ?", (book_id,)).fetchone()
        return _row_to_book(row)


class SqliteUserRepo:
    def __init__(self, db: SqliteDatabase) -> None:
        self.db = db

    def exists_by_login(self, login: str) -> bool:
        return self.db.fetch_one("SELECT 1 FROM users WHERE login = ?", (login,)) is not None

    def get(self, user_id: str) -> Optional[User]:
        row = self.db.fetch_one("SELECT * FROM users WHERE user_id = ?", (user_id,))
        return _row_to_user(row) if row else None

    def get_by_login(self, login: str) -> Optional[User]:
        row = self.db.fetch_one("SELECT * FROM users WHERE login = ?", (login,))
        return _row_to_user(row) if row else None

    def list_all(self) -> List[User]:
        return [_row_to_user(r) for r in self.db.fetch_all("SELECT * FROM users ORDER BY rowid")]

    def save(self, user: User) -> User:
        with self.db.connect() as conn:
            conn.execute(
                "INSERT INTO users (user_id, login, name, email, role, active, password_hash) "
                "VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    user.user_id,
                    user.login,
                    user.name,
                    user.email,
                    user.role.value,
                    1 if user.active else 0,
                    user.password_hash,
                ),
            )
        return self.get(user.user_id) or user

    def update(self, user: User) -> None:
        with self.db.connect() as conn:
            cur = conn.execute(
                "UPDATE users SET login = ?, name = ?, email = ?, role = ?, active = ?, "
                "password_hash = ? WHERE user_id = ?",
                (
                    user.login,
                    user.name,
                    user.email,
                    user.role.value,
                    1 if user.active else 0,
                    user.password_hash,
                    user.user_id,
                ),
            )
            if cur.rowcount == 0:
                raise StorageError(f"user {user.user_id} is not stored")

    def delete(self, user_id: str) -> None:
        with self.db.connect() as conn:
            conn.execute("DELETE FROM users WHERE user_id = ?", (user_id,))
