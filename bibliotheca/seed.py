from __future__ import annotations
import logging

from .api import LibrarySystem
from .domain import Role

logger = logging.getLogger(__name__)


def seed_demo_data(sys: LibrarySystem) -> None:
    # users
    sys.register("alice", "alice-secret", name="Alice Reader", email="alice@example.com")
    sys.register("bob", "bob-secret", name="Bob Reader", email="bob@example.com")
    sys.register(
        "admin", "admin-secret", role=Role.ADMIN, name="Ava Admin", email="admin@example.com"
    )

    # books
    dune = sys.add_book("Dune", "Frank Herbert", "9780441172719", "sci-fi", copies=2)
    sys.add_book(
        "Harry Potter and the Sorcerer's Stone",
        "J.K. Rowling",
        "9780590353427",
        "fantasy",
        copies=1,
    )
    clean_code = sys.add_book(
        "Clean Code", "Robert C. Martin", "9780132350884", "software", copies=3
    )

    # copies out on loan
    sys.catalog.lend_copy(dune.book_id)
    sys.catalog.lend_copy(clean_code.book_id)

    logger.info("seeded users: %s", [u.login for u in sys.identity.list_users()])
    logger.info("seeded books: %s", [b.title for b in sys.catalog.list_books()])
