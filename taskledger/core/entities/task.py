"""Task Domain Entity

Pure business logic for Task, independent of infrastructure.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from ..exceptions import InvalidStateTransition


class TaskStatus(str, Enum):
    """Task status"""

    NEW = "NEW"  # Created, tokens reserved
    COMPLETED = "COMPLETED"  # Work done, awaiting closure
    CLOSING = "CLOSING"  # Close in progress, transfer pending
    CLOSED = "CLOSED"  # Terminal, tokens released to assignees


@dataclass
class Task:
    """
    Task Domain Entity

    One unit of work with tokens escrowed against it.

    Lifecycle:
    - NEW -> COMPLETED (by the task owner)
    - NEW | COMPLETED -> CLOSING -> CLOSED (by the administrator)
    - CLOSING -> previous status when the release transfer fails
    """

    task_id: str
    owner: str
    reserved_amount: int = 0
    assignees: list[str] = field(default_factory=list)
    status: TaskStatus = TaskStatus.NEW

    # Status to return to if a close is aborted
    previous_status: TaskStatus | None = None

    # Timestamps
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime | None = None
    closed_at: datetime | None = None

    def __post_init__(self):
        """Validate invariants"""
        if not self.task_id:
            raise ValueError("task_id cannot be empty")
        if not self.owner:
            raise ValueError("owner cannot be empty")
        if isinstance(self.reserved_amount, bool) or not isinstance(self.reserved_amount, int):
            raise ValueError("reserved_amount must be an integer")
        if self.reserved_amount < 0:
            raise ValueError("reserved_amount cannot be negative")

    # ========== Status Transitions ==========

    def add_assignee(self, assignee: str) -> None:
        """
        Append an assignee

        Duplicates are kept; the list is what the release transfer pays out to.

        Raises:
            InvalidStateTransition: If the task is closing or closed
        """
        if not self.is_open():
            raise InvalidStateTransition(
                f"Cannot add assignee to task {self.task_id} in status: {self.status.value}"
            )
        self.assignees.append(assignee)
        self._touch()

    def mark_completed(self) -> None:
        """
        Mark task as completed

        Raises:
            InvalidStateTransition: If the task is not NEW
        """
        if self.status != TaskStatus.NEW:
            raise InvalidStateTransition(
                f"Cannot complete task {self.task_id} in status: {self.status.value}"
            )
        self.status = TaskStatus.COMPLETED
        self._touch()

    def begin_close(self) -> None:
        """
        Enter the CLOSING state ahead of the release transfer

        Calling this on a task that is already CLOSING resumes an
        interrupted close and keeps the original previous_status.

        Raises:
            InvalidStateTransition: If the task is already closed
        """
        if self.status == TaskStatus.CLOSED:
            raise InvalidStateTransition(f"Task {self.task_id} is already closed")
        if self.status != TaskStatus.CLOSING:
            self.previous_status = self.status
            self.status = TaskStatus.CLOSING
        self._touch()

    def finish_close(self) -> None:
        """
        Finalize the close once tokens have been released

        Raises:
            InvalidStateTransition: If the task is not CLOSING
        """
        if self.status != TaskStatus.CLOSING:
            raise InvalidStateTransition(
                f"Cannot finish close of task {self.task_id} in status: {self.status.value}"
            )
        self.status = TaskStatus.CLOSED
        self.previous_status = None
        self.closed_at = datetime.now(UTC)
        self._touch()

    def abort_close(self) -> None:
        """Return a CLOSING task to the status it had before the close began"""
        if self.status != TaskStatus.CLOSING:
            raise InvalidStateTransition(
                f"Cannot abort close of task {self.task_id} in status: {self.status.value}"
            )
        self.status = self.previous_status or TaskStatus.NEW
        self.previous_status = None
        self._touch()

    def _touch(self) -> None:
        self.updated_at = datetime.now(UTC)

    # ========== Queries ==========

    def is_open(self) -> bool:
        """Check if task can still be mutated by its owner"""
        return self.status in (TaskStatus.NEW, TaskStatus.COMPLETED)

    def is_closed(self) -> bool:
        """Check if task reached the terminal state"""
        return self.status == TaskStatus.CLOSED

    def holds_reservation(self) -> bool:
        """Check if the task's amount still counts towards its owner's reservation"""
        return self.status != TaskStatus.CLOSED

    # ========== Serialization ==========

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "task_id": self.task_id,
            "owner": self.owner,
            "reserved_amount": str(self.reserved_amount),
            "assignees": list(self.assignees),
            "status": self.status.value,
            "previous_status": self.previous_status.value if self.previous_status else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "closed_at": self.closed_at.isoformat() if self.closed_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        """Create Task from dictionary"""
        data = data.copy()

        # Amounts travel as base-10 strings
        if isinstance(data.get("reserved_amount"), str):
            data["reserved_amount"] = int(data["reserved_amount"])

        # Parse enums
        if isinstance(data.get("status"), str):
            data["status"] = TaskStatus(data["status"])
        if isinstance(data.get("previous_status"), str):
            data["previous_status"] = TaskStatus(data["previous_status"])

        # Parse datetime strings
        for field_name in ("created_at", "updated_at", "closed_at"):
            if data.get(field_name) and isinstance(data[field_name], str):
                data[field_name] = datetime.fromisoformat(data[field_name])

        if data.get("created_at") is None:
            data.pop("created_at", None)

        return cls(**data)
