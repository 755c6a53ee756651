from __future__ import annotations
from typing import List, Optional

from .audit import AuditLog, LoggingAuditLog
from .config import Settings, settings as default_settings
from .domain import Book, Role, User
from .hashing import PasswordHasher, Pbkdf2PasswordHasher
from .repositories import BookRepo, UserRepo
from .services import CatalogService, IdentityService
from .sqlite_repositories import SqliteBookRepo, SqliteDatabase, SqliteUserRepo


class LibrarySystem:
    """
    A simple facade that wires repos + services and offers a compact API.

    Storage is chosen from ``settings``: a SQLite file when ``db_file`` is
    set, in-memory repositories otherwise.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        audit: Optional[AuditLog] = None,
        hasher: Optional[PasswordHasher] = None,
    ) -> None:
        self.settings = settings or default_settings
        self.audit = audit or LoggingAuditLog()

        # repos
        if self.settings.uses_sqlite:
            self.db: Optional[SqliteDatabase] = SqliteDatabase(self.settings.db_file)
            self.books = SqliteBookRepo(self.db)
            self.users = SqliteUserRepo(self.db)
        else:
            self.db = None
            self.books = BookRepo()
            self.users = UserRepo()

        # services
        self.catalog = CatalogService(self.books, self.audit)
        self.identity = IdentityService(
            self.users,
            hasher or Pbkdf2PasswordHasher(self.settings.hash_iterations),
            self.audit,
        )

    # ---- identity module
    def register(
        self,
        login: str,
        password: str,
        role: Role = Role.USER,
        name: str = "",
        email: str = "",
    ) -> User:
        return self.identity.create_user(
            User(login=login, name=name, email=email, role=role), password
        )

    def login(self, login: str, password: str) -> User:
        return self.identity.authenticate(login, password)

    # ---- catalog module
    def add_book(
        self,
        title: str,
        author: str,
        isbn: str,
        category_id: str,
        copies: int = 1,
    ) -> Book:
        return self.catalog.add_book(
            Book(
                isbn=isbn,
                title=title,
                author=author,
                category_id=category_id,
                copies_total=copies,
                copies_available=copies,
            )
        )

    def search_books(self, text: str) -> List[Book]:
        found = {b.book_id: b for b in self.catalog.search_by_title(text)}
        for b in self.catalog.search_by_author(text):
            found.setdefault(b.book_id, b)
        return list(found.values())

    # ---- reporting
    def report_inventory(self) -> List[tuple[Book, int, int]]:
        """
        Returns tuples of (Book, total_copies, available_copies)
        """
        return [(b, b.copies_total, b.copies_available) for b in self.catalog.list_books()]
