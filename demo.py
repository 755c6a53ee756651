from __future__ import annotations

from bibliotheca import LibrarySystem, seed_demo_data, setup_logging, settings
from bibliotheca.errors import AuthenticationError, BookInUse


def demo_flow() -> None:
    setup_logging(settings.log_level, settings.log_file)
    sys = LibrarySystem()
    seed_demo_data(sys)

    # Search
    print("\n[demo] search 'herbert':", [b.title for b in sys.search_books("herbert")])

    # Report inventory
    print("\n[demo] inventory:")
    for book, total, available in sys.report_inventory():
        print(f"  - {book.title}: total={total}, available={available}")

    # Login
    alice = sys.login("alice", "alice-secret")
    print(f"\n[demo] alice logged in as {alice.role.value}, admin={sys.identity.is_admin(alice)}")

    # Deactivated accounts cannot log in
    sys.identity.deactivate(alice.user_id)
    try:
        sys.login("alice", "alice-secret")
    except AuthenticationError as exc:
        print(f"[demo] alice after deactivation: {exc}")
    sys.identity.activate(alice.user_id)

    # Deleting a book with copies on loan is refused
    dune = sys.catalog.get_book_by_isbn("9780441172719")
    try:
        sys.catalog.delete_book(dune.book_id)
    except BookInUse as exc:
        print(f"\n[demo] delete Dune: {exc}")

    sys.catalog.return_copy(dune.book_id)
    sys.catalog.delete_book(dune.book_id)
    print("[demo] Dune deleted after its copy came back:", sys.catalog.get_book(dune.book_id) is None)


if __name__ == "__main__":
    demo_flow()
