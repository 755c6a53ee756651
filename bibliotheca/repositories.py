from __future__ import annotations
from dataclasses import replace
from threading import RLock
from typing import Dict, List, Optional

from .domain import Book, User
from .errors import CopyCountViolation, DuplicateIdError, DuplicateKeyError, StorageError


class BookRepo:
    """In-memory book store. Records are copied in and out."""

    def __init__(self) -> None:
        self._books: Dict[str, Book] = {}
        self._lock = RLock()

    def exists_by_isbn(self, isbn: str) -> bool:
        return self.get_by_isbn(isbn) is not None

    def get(self, book_id: str) -> Optional[Book]:
        with self._lock:
            b = self._books.get(book_id)
            return replace(b) if b else None

    def get_by_isbn(self, isbn: str) -> Optional[Book]:
        with self._lock:
            for b in self._books.values():
                if b.isbn == isbn:
                    return replace(b)
        return None

    def list_all(self) -> List[Book]:
        with self._lock:
            return [replace(b) for b in self._books.values()]

    def search(
        self,
        title: Optional[str] = None,
        author: Optional[str] = None,
        category_id: Optional[str] = None,
        available: Optional[bool] = None,
    ) -> List[Book]:
        def matches(b: Book) -> bool:
            if title is not None and title.casefold().strip() not in b.title.casefold():
                return False
            if author is not None and author.casefold().strip() not in b.author.casefold():
                return False
            if category_id is not None and b.category_id != category_id:
                return False
            if available is not None and b.is_available != available:
                return False
            return True

        with self._lock:
            return [replace(b) for b in self._books.values() if matches(b)]

    def save(self, book: Book) -> Book:
        with self._lock:
            if book.book_id in self._books:
                raise DuplicateIdError(f"book id {book.book_id} already stored")
            if self._isbn_owner(book.isbn) is not None:
                raise DuplicateKeyError(f"isbn {book.isbn} already stored")
            self._books[book.book_id] = replace(book)
            return replace(book)

    def update(self, book: Book) -> None:
        with self._lock:
            if book.book_id not in self._books:
                raise StorageError(f"book {book.book_id} is not stored")
            owner = self._isbn_owner(book.isbn)
            if owner is not None and owner != book.book_id:
                raise DuplicateKeyError(f"isbn {book.isbn} already stored")
            self._books[book.book_id] = replace(book)

    def delete(self, book_id: str) -> None:
        with self._lock:
            self._books.pop(book_id, None)

    def increment_copies(self, book_id: str, total: int, available: int) -> Book:
        """Apply both deltas atomically, refusing to break the count invariant."""
        with self._lock:
            b = self._books.get(book_id)
            if b is None:
                raise StorageError(f"book {book_id} is not stored")
            updated = replace(
                b,
                copies_total=b.copies_total + total,
                copies_available=b.copies_available + available,
            )
            if not updated.counts_are_consistent():
                raise CopyCountViolation(
                    f"book {book_id}: total={updated.copies_total}, "
                    f"available={updated.copies_available}"
                )
            self._books[book_id] = updated
            return replace(updated)

    def _isbn_owner(self, isbn: str) -> Optional[str]:
        for b in self._books.values():
            if b.isbn == isbn:
                return b.book_id
        return None


class UserRepo:
    """In-memory user store. Records are copied in and out."""

    def __init__(self) -> None:
        self._users: Dict[str, User] = {}
        self._lock = RLock()

    def exists_by_login(self, login: str) -> bool:
        return self.get_by_login(login) is not None

    def get(self, user_id: str) -> Optional[User]:
        with self._lock:
            u = self._users.get(user_id)
            return replace(u) if u else None

    def get_by_login(self, login: str) -> Optional[User]:
        with self._lock:
            for u in self._users.values():
                if u.login == login:
                    return replace(u)
        return None

    def list_all(self) -> List[User]:
        with self._lock:
            return [replace(u) for u in self._users.values()]

    def save(self, user: User) -> User:
        with self._lock:
            if user.user_id in self._users:
                raise DuplicateIdError(f"user id {user.user_id} already stored")
            if self._login_owner(user.login) is not None:
                raise DuplicateKeyError(f"login {user.login} already stored")
            self._users[user.user_id] = replace(user)
            return replace(user)

    def update(self, user: User) -> None:
        with self._lock:
            if user.user_id not in self._users:
                raise StorageError(f"user {user.user_id} is not stored")
            owner = self._login_owner(user.login)
            if owner is not None and owner != user.user_id:
                raise DuplicateKeyError(f"login {user.login} already stored")
            self._users[user.user_id] = replace(user)

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._users.pop(user_id, None)

    def _login_owner(self, login: str) -> Optional[str]:
        for u in self._users.values():
            if u.login == login:
                return u.user_id
        return None
