from __future__ import annotations
from dataclasses import replace
from functools import wraps
from typing import Callable, List, NoReturn, Optional, TypeVar
import logging
import secrets
import uuid

from .audit import AuditEvent, AuditLog, LoggingAuditLog, SafeAuditLog
from .domain import Book, Role, User
from .errors import (
    AllCopiesReturned,
    AuthenticationError,
    BookInUse,
    CopyCountViolation,
    DuplicateId,
    DuplicateIdError,
    DuplicateISBN,
    DuplicateKeyError,
    DuplicateLogin,
    InvalidCopyCount,
    InvalidCredentials,
    InvalidRole,
    LibraryError,
    MissingCategory,
    MissingField,
    NoCopiesAvailable,
    NotFoundError,
    OperationFailed,
)
from .hashing import PasswordHasher, Pbkdf2PasswordHasher
from .repositories import BookRepo, UserRepo

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable)


def _new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def _guarded(action: str) -> Callable[[F], F]:
    """Translate unexpected storage/hashing failures into ``OperationFailed``.

    Service errors pass through untouched. Anything else is reported to the
    service's audit log and re-raised as a generic failure, chained to the
    original exception.
    """

    def decorate(fn: F) -> F:
        @wraps(fn)
        def wrapper(self, *args, **kwargs):
            try:
                return fn(self, *args, **kwargs)
            except LibraryError:
                raise
            except Exception as exc:
                logger.error("%s failed", action, exc_info=True)
                self.audit.record(
                    AuditEvent.OPERATION_FAILED,
                    f"{action} failed: {exc.__class__.__name__}: {exc}",
                )
                raise OperationFailed(f"{action} failed") from exc

        return wrapper  # type: ignore[return-value]

    return decorate


def _check_counts(book: Book) -> None:
    for name in ("copies_total", "copies_available"):
        value = getattr(book, name)
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidCopyCount(f"{name} must be an integer, got {value!r}")
    if not book.counts_are_consistent():
        raise InvalidCopyCount(
            f"copy counts must satisfy 0 <= available <= total "
            f"(total={book.copies_total}, available={book.copies_available})"
        )


class CatalogService:
    """Book records and the total/available copy invariant."""

    def __init__(self, books: BookRepo, audit: Optional[AuditLog] = None) -> None:
        self.books = books
        self.audit = SafeAuditLog(audit or LoggingAuditLog())

    @_guarded("add book")
    def add_book(self, book: Book) -> Book:
        if not book.isbn or not book.isbn.strip():
            raise MissingField("ISBN is required")
        book = replace(book, isbn=book.isbn.strip())
        if book.book_id and self.books.get(book.book_id) is not None:
            raise DuplicateId(f"book id {book.book_id} is already in use")
        if self.books.exists_by_isbn(book.isbn):
            raise DuplicateISBN(f"ISBN {book.isbn} is already registered")
        if not book.category_id:
            raise MissingCategory("a category must be assigned")
        _check_counts(book)

        record = replace(book, book_id=book.book_id or _new_id("bk"))
        try:
            stored = self.books.save(record)
        except DuplicateIdError as exc:
            raise DuplicateId(f"book id {record.book_id} is already in use") from exc
        except DuplicateKeyError as exc:
            raise DuplicateISBN(f"ISBN {book.isbn} is already registered") from exc
        self.audit.record(
            AuditEvent.BOOK_ADDED, f"Book added: {stored.title} (ISBN: {stored.isbn})"
        )
        return stored

    @_guarded("update book")
    def update_book(self, book: Book) -> Book:
        if not book.book_id or self.books.get(book.book_id) is None:
            raise NotFoundError(f"book {book.book_id!r} not found")
        if not book.isbn or not book.isbn.strip():
            raise MissingField("ISBN is required")
        book = replace(book, isbn=book.isbn.strip())
        owner = self.books.get_by_isbn(book.isbn)
        if owner is not None and owner.book_id != book.book_id:
            raise DuplicateISBN(f"ISBN {book.isbn} is already registered")
        if not book.category_id:
            raise MissingCategory("a category must be assigned")
        _check_counts(book)

        try:
            self.books.update(book)
        except DuplicateKeyError as exc:
            raise DuplicateISBN(f"ISBN {book.isbn} is already registered") from exc
        self.audit.record(AuditEvent.BOOK_UPDATED, f"Book updated: {book.title}")
        return replace(book)

    @_guarded("delete book")
    def delete_book(self, book_id: str) -> None:
        book = self._require(book_id)
        if book.copies_on_loan > 0:
            raise BookInUse(
                f"cannot delete {book.title!r}: {book.copies_on_loan} copy(ies) on loan"
            )
        self.books.delete(book_id)
        self.audit.record(
            AuditEvent.BOOK_DELETED, f"Book deleted: {book.title} (ISBN: {book.isbn})"
        )

    @_guarded("add copies")
    def add_copies(self, book_id: str, count: int) -> Book:
        if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
            raise InvalidCopyCount(f"number of copies must be a positive integer, got {count!r}")
        self._require(book_id)
        book = self.books.increment_copies(book_id, total=count, available=count)
        self.audit.record(
            AuditEvent.COPIES_ADDED, f"{count} copy(ies) added: {book.title}"
        )
        return book

    @_guarded("lend copy")
    def lend_copy(self, book_id: str) -> Book:
        """Take one available copy out; called by the loan workflow."""
        book = self._require(book_id)
        if not book.is_available:
            logger.info("no copies of %s available", book_id)
            raise NoCopiesAvailable(f"no copies of {book.title!r} available")
        try:
            book = self.books.increment_copies(book_id, total=0, available=-1)
        except CopyCountViolation as exc:
            raise NoCopiesAvailable(f"no copies of {book.title!r} available") from exc
        self.audit.record(
            AuditEvent.COPY_LENT,
            f"Copy lent: {book.title} ({book.copies_available}/{book.copies_total} available)",
        )
        return book

    @_guarded("return copy")
    def return_copy(self, book_id: str) -> Book:
        """Put one loaned copy back on the shelf."""
        book = self._require(book_id)
        if book.copies_on_loan == 0:
            raise AllCopiesReturned(f"no copies of {book.title!r} are on loan")
        try:
            book = self.books.increment_copies(book_id, total=0, available=1)
        except CopyCountViolation as exc:
            raise AllCopiesReturned(f"no copies of {book.title!r} are on loan") from exc
        self.audit.record(
            AuditEvent.COPY_RETURNED,
            f"Copy returned: {book.title} ({book.copies_available}/{book.copies_total} available)",
        )
        return book

    # queries
    @_guarded("get book")
    def get_book(self, book_id: str) -> Optional[Book]:
        return self.books.get(book_id)

    @_guarded("get book by isbn")
    def get_book_by_isbn(self, isbn: str) -> Optional[Book]:
        return self.books.get_by_isbn(isbn)

    @_guarded("list books")
    def list_books(self) -> List[Book]:
        return self.books.list_all()

    @_guarded("search by title")
    def search_by_title(self, text: str) -> List[Book]:
        return self.books.search(title=text)

    @_guarded("search by author")
    def search_by_author(self, text: str) -> List[Book]:
        return self.books.search(author=text)

    @_guarded("list by category")
    def list_by_category(self, category_id: str) -> List[Book]:
        return self.books.search(category_id=category_id)

    @_guarded("list available")
    def list_available(self) -> List[Book]:
        return self.books.search(available=True)

    @_guarded("check availability")
    def is_available(self, book_id: str) -> bool:
        book = self.books.get(book_id)
        return book is not None and book.copies_available > 0

    def _require(self, book_id: str) -> Book:
        book = self.books.get(book_id)
        if book is None:
            raise NotFoundError(f"book {book_id!r} not found")
        return book


class IdentityService:
    """User records, credentials and the active/inactive account state."""

    def __init__(
        self,
        users: UserRepo,
        hasher: Optional[PasswordHasher] = None,
        audit: Optional[AuditLog] = None,
    ) -> None:
        self.users = users
        self.hasher = hasher or Pbkdf2PasswordHasher()
        self.audit = SafeAuditLog(audit or LoggingAuditLog())
        self._decoy_hash: Optional[str] = None

    @_guarded("authenticate")
    def authenticate(self, login: str, password: str) -> User:
        """Return the user for a correct login/password on an active account.

        Every refusal raises the same ``AuthenticationError``; only the audit
        log records whether the login was unknown, the account inactive or
        the password wrong.
        """
        password = password or ""
        # built before the lookup so no path pays for it alone
        decoy = self._decoy()
        user = self.users.get_by_login(login) if login else None
        if user is None:
            self.hasher.verify(password, decoy)
            self._refuse(login, "unknown_login")

        matches = self.hasher.verify(password, user.password_hash or decoy)
        if not user.active:
            self._refuse(login, "inactive_account")
        if not matches:
            self._refuse(login, "bad_password")

        role = Role.parse(user.role)
        self.audit.record(
            AuditEvent.AUTH_SUCCEEDED,
            f"User authenticated: {login} ({role.value if role else user.role})",
        )
        return user.without_credentials()

    @_guarded("create user")
    def create_user(self, user: User, plaintext_password: str) -> User:
        if not user.login or not user.login.strip():
            raise MissingField("login is required")
        user = replace(user, login=user.login.strip())
        if user.user_id and self.users.get(user.user_id) is not None:
            raise DuplicateId(f"user id {user.user_id} is already in use")
        if self.users.exists_by_login(user.login):
            raise DuplicateLogin(f"login {user.login!r} is already taken")
        role = Role.parse(user.role)
        if role is None:
            raise InvalidRole(f"invalid role {user.role!r}")
        if not plaintext_password:
            raise MissingField("password is required")

        record = replace(
            user,
            user_id=user.user_id or _new_id("usr"),
            role=role,
            active=True,
            password_hash=self.hasher.hash(plaintext_password),
        )
        try:
            stored = self.users.save(record)
        except DuplicateIdError as exc:
            raise DuplicateId(f"user id {record.user_id} is already in use") from exc
        except DuplicateKeyError as exc:
            raise DuplicateLogin(f"login {user.login!r} is already taken") from exc
        self.audit.record(
            AuditEvent.USER_CREATED, f"User created: {stored.login} ({role.value})"
        )
        return stored.without_credentials()

    @_guarded("update user")
    def update_user(self, user: User) -> User:
        """Overwrite profile fields. Credentials and the active flag are left alone."""
        existing = self._require(user.user_id)
        if not user.login or not user.login.strip():
            raise MissingField("login is required")
        user = replace(user, login=user.login.strip())
        role = Role.parse(user.role)
        if role is None:
            raise InvalidRole(f"invalid role {user.role!r}")
        owner = self.users.get_by_login(user.login)
        if owner is not None and owner.user_id != existing.user_id:
            raise DuplicateLogin(f"login {user.login!r} is already taken")

        record = replace(
            existing, login=user.login, name=user.name, email=user.email, role=role
        )
        try:
            self.users.update(record)
        except DuplicateKeyError as exc:
            raise DuplicateLogin(f"login {user.login!r} is already taken") from exc
        self.audit.record(AuditEvent.USER_UPDATED, f"User updated: {record.login}")
        return record.without_credentials()

    @_guarded("change password")
    def change_password(self, user_id: str, old_password: str, new_password: str) -> None:
        user = self._require(user_id)
        if not user.password_hash or not self.hasher.verify(old_password or "", user.password_hash):
            raise InvalidCredentials("current password is incorrect")
        if not new_password:
            raise MissingField("new password is required")

        user.password_hash = self.hasher.hash(new_password)
        self.users.update(user)
        self.audit.record(AuditEvent.PASSWORD_CHANGED, f"Password changed for: {user.login}")

    @_guarded("activate user")
    def activate(self, user_id: str) -> User:
        return self._set_active(user_id, True)

    @_guarded("deactivate user")
    def deactivate(self, user_id: str) -> User:
        return self._set_active(user_id, False)

    def is_admin(self, user: Optional[User]) -> bool:
        return user is not None and Role.parse(user.role) is Role.ADMIN

    # queries
    @_guarded("get user")
    def get_user(self, user_id: str) -> Optional[User]:
        user = self.users.get(user_id)
        return user.without_credentials() if user else None

    @_guarded("get user by login")
    def get_user_by_login(self, login: str) -> Optional[User]:
        user = self.users.get_by_login(login)
        return user.without_credentials() if user else None

    @_guarded("list users")
    def list_users(self) -> List[User]:
        return [u.without_credentials() for u in self.users.list_all()]

    def _set_active(self, user_id: str, active: bool) -> User:
        user = self._require(user_id)
        user.active = active
        self.users.update(user)
        if active:
            self.audit.record(AuditEvent.USER_ACTIVATED, f"User activated: {user.login}")
        else:
            self.audit.record(AuditEvent.USER_DEACTIVATED, f"User deactivated: {user.login}")
        return user.without_credentials()

    def _require(self, user_id: str) -> User:
        user = self.users.get(user_id) if user_id else None
        if user is None:
            raise NotFoundError(f"user {user_id!r} not found")
        return user

    def _refuse(self, login: str, reason: str) -> NoReturn:
        self.audit.record(
            AuditEvent.AUTH_FAILED, f"Authentication failed for: {login} [{reason}]"
        )
        raise AuthenticationError("invalid login or password")

    def _decoy(self) -> str:
        if self._decoy_hash is None:
            self._decoy_hash = self.hasher.hash(secrets.token_hex(16))
        return self._decoy_hash
