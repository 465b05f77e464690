"""Tests for SequenceService counter allocation."""

from ledger_kernel.services.sequence_service import SequenceService


class TestSequenceService:

    def test_first_value_is_one(self, session):
        service = SequenceService(session)
        assert service.next_value("test:first") == 1

    def test_values_strictly_increase(self, session):
        service = SequenceService(session)
        values = [service.next_value("test:monotonic") for _ in range(5)]
        assert values == [1, 2, 3, 4, 5]
        assert service.current_value("test:monotonic") == 5

    def test_unused_sequence_reports_zero(self, session):
        assert SequenceService(session).current_value("test:unused") == 0

    def test_sequences_are_independent(self, session):
        service = SequenceService(session)
        service.next_value("test:a")
        service.next_value("test:a")
        assert service.next_value("test:b") == 1

    def test_journal_sequence_is_per_tenant(self, session):
        service = SequenceService(session)
        assert service.next_journal_seq("t1") == 1
        assert service.next_journal_seq("t1") == 2
        assert service.next_journal_seq("t2") == 1
        assert SequenceService.journal_sequence_name("t1") == "journal_entry:t1"

    def test_rolled_back_savepoint_returns_value(self, session):
        service = SequenceService(session)
        service.next_value("test:rollback")

        savepoint = session.begin_nested()
        service.next_value("test:rollback")
        savepoint.rollback()

        assert service.next_value("test:rollback") == 2
