"""Pending-edit tracking for records edited in the UI.

An edit starts CLEAN, becomes PENDING once a new value is proposed, and is
settled by ``reconcile``: COMMITTED with the value the store returned, or
ROLLED_BACK to a freshly fetched copy when the write fails.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional

from store import StorageError


class EditState(Enum):
    CLEAN = "clean"
    PENDING = "pending"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


@dataclass
class Edit:
    entity_id: str
    original: Any
    proposed: Any = None
    state: EditState = EditState.CLEAN
    error: Optional[str] = None

    def propose(self, value: Any) -> "Edit":
        self.proposed = value
        self.state = EditState.PENDING
        self.error = None
        return self

    @property
    def current(self) -> Any:
        """Value to display: the proposal while pending, else the stored one."""
        if self.state is EditState.PENDING:
            return self.proposed
        return self.original


def reconcile(edit: Edit, write: Callable[[Any], Any], refetch: Callable[[], Any]) -> Edit:
    """Persist a pending edit, re-reading the stored record if the write fails."""
    if edit.state is not EditState.PENDING:
        return edit
    try:
        stored = write(edit.proposed)
    except StorageError as e:
        edit.original = refetch()
        edit.state = EditState.ROLLED_BACK
        edit.error = str(e)
    else:
        edit.original = stored
        edit.state = EditState.COMMITTED
    edit.proposed = None
    return edit
