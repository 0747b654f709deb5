"""Tests for recording, correcting and removing time entries."""

from datetime import date, time
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from hourly_billing.errors import AuthorizationError, StateError, ValidationError
from hourly_billing.models import AuditLogEntry, EntryStatusLog, TimeEntry
from hourly_billing.services.approval_service import ApprovalWorkflow
from hourly_billing.services.statement_assembler import StatementAssembler
from hourly_billing.services.status_ledger import StatusLedger
from hourly_billing.services.time_entry_service import EntryData, TimeEntryService, compute_duration

from .conftest import DEPT_A, DEPT_B, WORKER_ID


def data(work_date=date(2024, 4, 3), start=time(10, 0), end=time(12, 30), department_id=DEPT_A, label=None):
    return EntryData(
        work_date=work_date,
        start_time=start,
        end_time=end,
        department_id=department_id,
        label=label,
    )


class TestComputeDuration:
    def test_whole_minutes(self):
        assert compute_duration(time(10, 0), time(12, 30)) == Decimal("2.5000")
        assert compute_duration(time(9, 0), time(9, 20)) == Decimal("0.3333")

    def test_seconds_are_ignored(self):
        assert compute_duration(time(10, 0, 59), time(11, 0, 1)) == Decimal("1.0000")

    def test_end_must_follow_start(self):
        with pytest.raises(ValidationError):
            compute_duration(time(12, 0), time(12, 0))
        with pytest.raises(ValidationError):
            compute_duration(time(12, 0), time(11, 0))


class TestCreateEntry:
    async def test_draft_for_self(self, session, clock, worker):
        service = TimeEntryService(session, clock)

        entry = await service.create_entry(worker, data())

        assert entry.owner_id == WORKER_ID
        assert entry.statement_id is None
        assert entry.duration == Decimal("2.5000")
        assert await StatusLedger(session, clock).entry_status(entry.time_entry_id) == 10

    async def test_cannot_record_for_someone_else(self, session, clock, worker, other_worker):
        with pytest.raises(AuthorizationError):
            await TimeEntryService(session, clock).create_entry(
                worker, data(), owner_id=other_worker.actor_id
            )

    async def test_head_records_for_worker_in_own_department(self, session, clock, head):
        entry = await TimeEntryService(session, clock).create_entry(head, data(), owner_id=WORKER_ID)

        assert entry.owner_id == WORKER_ID
        assert entry.created_by == head.actor_id

    async def test_bad_times_rejected(self, session, clock, worker):
        with pytest.raises(ValidationError):
            await TimeEntryService(session, clock).create_entry(
                worker, data(start=time(14, 0), end=time(13, 0))
            )


@pytest.fixture
def open_statement(session, clock, worker, quarters, make_draft):
    async def _make():
        entry = await make_draft(worker, date(2024, 4, 3))
        [statement] = await StatementAssembler(session, clock).assemble([entry.time_entry_id], worker)
        await session.commit()
        return statement, entry

    return _make


class TestEntriesOfStatements:
    async def test_approver_adds_entry_to_statement(self, session, clock, head, open_statement):
        statement, _ = await open_statement()

        entry = await TimeEntryService(session, clock).create_entry(
            head, data(date(2024, 4, 4)), statement_id=statement.statement_id
        )

        assert entry.owner_id == statement.owner_id
        assert entry.statement_id == statement.statement_id
        assert await StatusLedger(session, clock).entry_status(entry.time_entry_id) == 11

    async def test_worker_cannot_add_to_statement(self, session, clock, worker, open_statement):
        statement, _ = await open_statement()

        with pytest.raises(AuthorizationError):
            await TimeEntryService(session, clock).create_entry(
                worker, data(date(2024, 4, 4)), statement_id=statement.statement_id
            )

    async def test_added_entry_must_fit_quarter(self, session, clock, head, open_statement):
        statement, _ = await open_statement()

        with pytest.raises(ValidationError):
            await TimeEntryService(session, clock).create_entry(
                head, data(date(2024, 7, 1)), statement_id=statement.statement_id
            )

    async def test_added_entry_must_fit_department(self, session, clock, admin, open_statement):
        statement, _ = await open_statement()

        with pytest.raises(ValidationError):
            await TimeEntryService(session, clock).create_entry(
                admin, data(department_id=DEPT_B), statement_id=statement.statement_id
            )

    async def test_worker_cannot_correct_submitted_entry(self, session, clock, worker, open_statement):
        _, entry = await open_statement()

        with pytest.raises(AuthorizationError):
            await TimeEntryService(session, clock).update_entry(
                worker, entry.time_entry_id, data(end=time(13, 0))
            )

    async def test_approver_corrects_open_statement(self, session, clock, head, open_statement):
        _, entry = await open_statement()

        _, changes = await TimeEntryService(session, clock).update_entry(
            head, entry.time_entry_id, data(end=time(13, 0), label="Training"), "Adjusted"
        )

        assert {c.field_name for c in changes} == {"end_time", "duration"}

    async def test_paid_statement_is_frozen(self, session, clock, head, office, open_statement):
        statement, entry = await open_statement()
        workflow = ApprovalWorkflow(session, clock)
        await workflow.approve(statement.statement_id, head)
        await workflow.finalize(statement.statement_id, office)
        await workflow.finalize(statement.statement_id, office)

        with pytest.raises(StateError) as exc_info:
            await TimeEntryService(session, clock).update_entry(
                office, entry.time_entry_id, data(end=time(13, 0))
            )
        assert exc_info.value.current_status == 23

        with pytest.raises(StateError):
            await TimeEntryService(session, clock).create_entry(
                office, data(date(2024, 4, 4)), statement_id=statement.statement_id
            )

    async def test_rejected_statement_is_frozen(self, session, clock, head, open_statement):
        statement, entry = await open_statement()
        await ApprovalWorkflow(session, clock).reject(statement.statement_id, head, "Wrong department")

        with pytest.raises(StateError) as exc_info:
            await TimeEntryService(session, clock).update_entry(
                head, entry.time_entry_id, data(end=time(13, 0))
            )
        assert exc_info.value.current_status == 24


class TestRemoveEntry:
    async def test_draft_is_deleted_with_its_history(self, session, clock, worker, make_draft):
        entry = await make_draft(worker, date(2024, 4, 3))
        service = TimeEntryService(session, clock)
        await service.update_entry(worker, entry.time_entry_id, data(end=time(13, 0)))

        deleted = await service.remove_entry(worker, entry.time_entry_id)

        assert deleted is True
        assert await session.get(TimeEntry, entry.time_entry_id) is None
        for model in (AuditLogEntry, EntryStatusLog):
            assert await session.scalar(select(func.count()).select_from(model)) == 0

    async def test_linked_entry_is_unlinked_and_invalidated(self, session, clock, head, open_statement):
        statement, entry = await open_statement()
        service = TimeEntryService(session, clock)

        deleted = await service.remove_entry(head, entry.time_entry_id, "Booked twice")

        assert deleted is False
        assert entry.statement_id is None
        assert await StatusLedger(session, clock).entry_status(entry.time_entry_id) == 12

        detail = await service.get_entry(head, entry.time_entry_id)
        [audit] = [item for item in detail.history if item.kind == "audit"]
        assert audit.field_name == "statement_id"
        assert audit.old_value == str(statement.statement_id)
        assert audit.new_value is None

    async def test_invalid_entry_cannot_be_removed_again(self, session, clock, head, open_statement):
        _, entry = await open_statement()
        service = TimeEntryService(session, clock)
        await service.remove_entry(head, entry.time_entry_id)

        with pytest.raises(StateError):
            await service.remove_entry(head, entry.time_entry_id)

    async def test_worker_cannot_remove_submitted_entry(self, session, clock, worker, open_statement):
        _, entry = await open_statement()

        with pytest.raises(AuthorizationError):
            await TimeEntryService(session, clock).remove_entry(worker, entry.time_entry_id)


class TestReads:
    async def test_drafts_lists_only_own_unlinked_drafts(
        self, session, clock, worker, other_worker, quarters, make_draft
    ):
        linked = await make_draft(worker, date(2024, 4, 3))
        older = await make_draft(worker, date(2024, 4, 10))
        newer = await make_draft(worker, date(2024, 4, 11))
        await make_draft(other_worker, date(2024, 4, 12))
        await StatementAssembler(session, clock).assemble([linked.time_entry_id], worker)

        drafts = await TimeEntryService(session, clock).drafts(worker)

        assert [e.time_entry_id for e in drafts] == [newer.time_entry_id, older.time_entry_id]

    async def test_get_entry_merges_history_in_order(self, session, clock, worker, quarters, make_draft):
        entry = await make_draft(worker, date(2024, 4, 3))
        service = TimeEntryService(session, clock)
        await service.update_entry(worker, entry.time_entry_id, data(label="Workshop"))
        await StatementAssembler(session, clock).assemble([entry.time_entry_id], worker)

        detail = await service.get_entry(worker, entry.time_entry_id)

        assert detail.status == 11
        assert detail.statement_status == 20
        assert [(item.kind, item.status_code or item.field_name) for item in detail.history] == [
            ("status", 10),
            ("audit", "label"),
            ("status", 11),
        ]

    async def test_get_entry_of_someone_else(self, session, clock, worker, other_worker, make_draft):
        entry = await make_draft(other_worker, date(2024, 4, 3), department_id=DEPT_B)

        with pytest.raises(AuthorizationError):
            await TimeEntryService(session, clock).get_entry(worker, entry.time_entry_id)
