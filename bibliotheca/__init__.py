"""
Bibliotheca: catalog and identity services for a library.

Exports key modules for convenient imports.
"""

from .domain import (
    Role,
    User,
    Book,
)

from .errors import (
    LibraryError,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthenticationError,
    OperationFailed,
)

from .repositories import (
    UserRepo,
    BookRepo,
)

from .sqlite_repositories import (
    SqliteDatabase,
    SqliteUserRepo,
    SqliteBookRepo,
)

from .audit import (
    AuditEvent,
    LoggingAuditLog,
    MemoryAuditLog,
    SafeAuditLog,
)

from .hashing import Pbkdf2PasswordHasher

from .services import (
    CatalogService,
    IdentityService,
)

from .config import Settings, settings
from .logging_config import setup_logging
from .api import LibrarySystem
from .seed import seed_demo_data

__all__ = [
    # domain
    "Role",
    "User",
    "Book",
    # errors
    "LibraryError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "AuthenticationError",
    "OperationFailed",
    # repos
    "UserRepo",
    "BookRepo",
    "SqliteDatabase",
    "SqliteUserRepo",
    "SqliteBookRepo",
    # audit
    "AuditEvent",
    "LoggingAuditLog",
    "MemoryAuditLog",
    "SafeAuditLog",
    # hashing
    "Pbkdf2PasswordHasher",
    # services
    "CatalogService",
    "IdentityService",
    # config
    "Settings",
    "settings",
    "setup_logging",
    # api
    "LibrarySystem",
    # seed
    "seed_demo_data",
]
