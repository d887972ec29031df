"""Unit Tests for the Task Entity

Tests pure business logic: status transitions, assignee rules and
serialization.
"""

from datetime import UTC, datetime

import pytest

from taskledger.core.entities import CallContext, ContractState
from taskledger.core.entities.task import Task, TaskStatus
from taskledger.core.exceptions import InvalidStateTransition

# ============================================================================
# Helpers
# ============================================================================


def _make_task(**overrides) -> Task:
    """Factory for a minimal valid Task"""
    defaults = dict(
        task_id="t1",
        owner="alice",
        reserved_amount=50,
    )
    defaults.update(overrides)
    return Task(**defaults)


# ============================================================================
# Construction
# ============================================================================


class TestTaskInvariants:
    """Test constructor validation"""

    def test_defaults(self):
        task = _make_task()
        assert task.status == TaskStatus.NEW
        assert task.assignees == []
        assert task.previous_status is None

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError, match="task_id"):
            _make_task(task_id="")

    def test_empty_owner_rejected(self):
        with pytest.raises(ValueError, match="owner"):
            _make_task(owner="")

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError, match="negative"):
            _make_task(reserved_amount=-1)

    def test_bool_amount_rejected(self):
        with pytest.raises(ValueError, match="integer"):
            _make_task(reserved_amount=True)

    def test_large_amount_kept_exact(self):
        amount = 10**40 + 7
        assert _make_task(reserved_amount=amount).reserved_amount == amount


# ============================================================================
# Transitions
# ============================================================================


class TestAssignees:
    def test_append_keeps_order_and_duplicates(self):
        task = _make_task()
        task.add_assignee("bob")
        task.add_assignee("carol")
        task.add_assignee("bob")
        assert task.assignees == ["bob", "carol", "bob"]

    def test_allowed_after_completion(self):
        task = _make_task()
        task.mark_completed()
        task.add_assignee("bob")
        assert task.assignees == ["bob"]

    @pytest.mark.parametrize("status", [TaskStatus.CLOSING, TaskStatus.CLOSED])
    def test_rejected_once_closing(self, status):
        task = _make_task(status=status)
        with pytest.raises(InvalidStateTransition):
            task.add_assignee("bob")
        assert task.assignees == []


class TestCompletion:
    def test_new_to_completed(self):
        task = _make_task()
        task.mark_completed()
        assert task.status == TaskStatus.COMPLETED
        assert task.updated_at is not None

    @pytest.mark.parametrize(
        "status", [TaskStatus.COMPLETED, TaskStatus.CLOSING, TaskStatus.CLOSED]
    )
    def test_only_from_new(self, status):
        task = _make_task(status=status)
        with pytest.raises(InvalidStateTransition):
            task.mark_completed()


class TestClose:
    def test_begin_and_finish(self):
        task = _make_task(status=TaskStatus.COMPLETED)
        task.begin_close()
        assert task.status == TaskStatus.CLOSING
        assert task.previous_status == TaskStatus.COMPLETED

        task.finish_close()
        assert task.status == TaskStatus.CLOSED
        assert task.previous_status is None
        assert task.closed_at is not None
        assert not task.holds_reservation()

    def test_abort_restores_previous_status(self):
        task = _make_task()
        task.begin_close()
        task.abort_close()
        assert task.status == TaskStatus.NEW
        assert task.previous_status is None

    def test_resume_keeps_original_previous_status(self):
        task = _make_task(status=TaskStatus.COMPLETED)
        task.begin_close()
        task.begin_close()
        assert task.previous_status == TaskStatus.COMPLETED

    def test_closed_is_terminal(self):
        task = _make_task(status=TaskStatus.CLOSED)
        with pytest.raises(InvalidStateTransition, match="already closed"):
            task.begin_close()

    def test_finish_requires_closing(self):
        with pytest.raises(InvalidStateTransition):
            _make_task().finish_close()

    def test_abort_requires_closing(self):
        with pytest.raises(InvalidStateTransition):
            _make_task().abort_close()

    def test_closing_still_holds_reservation(self):
        task = _make_task()
        task.begin_close()
        assert task.holds_reservation()


# ============================================================================
# Serialization
# ============================================================================


class TestSerialization:
    def test_amount_serialized_as_string(self):
        data = _make_task(reserved_amount=10**30).to_dict()
        assert data["reserved_amount"] == str(10**30)
        assert data["status"] == "NEW"

    def test_from_dict_restores_task(self):
        task = _make_task(assignees=["bob"])
        task.begin_close()

        restored = Task.from_dict(task.to_dict())

        assert restored.task_id == "t1"
        assert restored.reserved_amount == 50
        assert restored.assignees == ["bob"]
        assert restored.status == TaskStatus.CLOSING
        assert restored.previous_status == TaskStatus.NEW
        assert restored.created_at == task.created_at

    def test_from_dict_without_timestamps(self):
        restored = Task.from_dict({"task_id": "t9", "owner": "dave", "reserved_amount": "3"})
        assert restored.reserved_amount == 3
        assert restored.status == TaskStatus.NEW


class TestContractState:
    def test_round_trip(self):
        contract = ContractState(
            administrator="admin",
            ledger_address="http://ledger.test",
            initialized_at=datetime(2026, 1, 1, tzinfo=UTC),
        )
        assert ContractState.from_dict(contract.to_dict()) == contract

    def test_call_context_requires_caller(self):
        with pytest.raises(ValueError):
            CallContext(caller="")
