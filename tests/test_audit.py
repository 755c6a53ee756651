import logging

from bibliotheca.audit import AuditEvent, LoggingAuditLog, MemoryAuditLog, SafeAuditLog


def test_memory_audit_log_keeps_order():
    log = MemoryAuditLog()
    log.record(AuditEvent.BOOK_ADDED, "first")
    log.record("CUSTOM", "second")

    assert [(r.event_type, r.message) for r in log.records] == [
        ("BOOK_ADDED", "first"),
        ("CUSTOM", "second"),
    ]
    assert [r.message for r in log.of_type(AuditEvent.BOOK_ADDED)] == ["first"]


def test_logging_audit_log_writes_to_audit_logger(caplog):
    with caplog.at_level(logging.INFO, logger="bibliotheca.audit"):
        LoggingAuditLog().record(AuditEvent.USER_CREATED, "User created: alice (USER)")

    assert caplog.records[-1].name == "bibliotheca.audit"
    assert caplog.records[-1].getMessage() == "USER_CREATED User created: alice (USER)"


class Boom:
    def record(self, event_type, message):
        raise OSError("no space left")


def test_safe_audit_log_swallows_and_reports(caplog):
    with caplog.at_level(logging.WARNING, logger="bibliotheca.audit"):
        SafeAuditLog(Boom()).record(AuditEvent.BOOK_DELETED, "gone")

    assert "audit sink failed for BOOK_DELETED" in caplog.text
