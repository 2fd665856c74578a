# undo.py
"""
Per-user undo history for post edits and deletes.

Each user gets a bounded LIFO of compensating actions: a description of how
to reverse one mutation. Pushing past the bound silently drops the oldest
entry; popping always returns the newest. History lives in memory for the
lifetime of one application instance and is never persisted.
"""

import datetime
import threading
from collections import deque
from dataclasses import dataclass
from typing import Dict, Deque, Optional, Union

DEFAULT_LIMIT = 10

EDIT = "EDIT"
DELETE = "DELETE"


def utcnow_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


@dataclass(frozen=True)
class PostSnapshot:
    """A full post row, captured before deletion."""

    id: int
    owner_id: int
    content: str
    like_count: int
    created_at: str

    @classmethod
    def from_row(cls, row) -> "PostSnapshot":
        return cls(
            id=row["id"],
            owner_id=row["author_id"],
            content=row["content"],
            like_count=row["likes"] or 0,
            created_at=row["created_at"],
        )


@dataclass(frozen=True)
class EditCompensation:
    post_id: int
    original_content: str
    new_content: str
    recorded_at: str

    kind = EDIT


@dataclass(frozen=True)
class DeleteCompensation:
    post: PostSnapshot
    recorded_at: str

    kind = DELETE


CompensatingAction = Union[EditCompensation, DeleteCompensation]


class UndoStack:
    """Maintains a bounded stack of compensating actions per user.

    All operations take the same lock, so eviction on push can never race a
    concurrent pop for the same user.
    """

    def __init__(self, limit: int = DEFAULT_LIMIT):
        if limit < 1:
            raise ValueError("undo limit must be at least 1")
        self.limit = limit
        self._stacks: Dict[int, Deque[CompensatingAction]] = {}
        self._lock = threading.Lock()

    def push(self, actor_id: int, action: CompensatingAction) -> None:
        with self._lock:
            stack = self._stacks.get(actor_id)
            if stack is None:
                stack = self._stacks[actor_id] = deque(maxlen=self.limit)
            stack.append(action)

    def pop(self, actor_id: int) -> Optional[CompensatingAction]:
        with self._lock:
            stack = self._stacks.get(actor_id)
            if not stack:
                return None
            return stack.pop()

    def peek(self, actor_id: int) -> Optional[CompensatingAction]:
        with self._lock:
            stack = self._stacks.get(actor_id)
            if not stack:
                return None
            return stack[-1]

    def is_empty(self, actor_id: int) -> bool:
        return self.size(actor_id) == 0

    def clear(self, actor_id: int) -> None:
        with self._lock:
            self._stacks.pop(actor_id, None)

    def size(self, actor_id: int) -> int:
        with self._lock:
            stack = self._stacks.get(actor_id)
            return len(stack) if stack else 0


class UndoStatusReporter:
    """Read-only view of a user's undo history.

    Only the tag and timestamp of the newest action are exposed, never its
    payload.
    """

    def __init__(self, stack: UndoStack):
        self.stack = stack

    def status(self, actor_id: int) -> dict:
        last = self.stack.peek(actor_id)
        count = self.stack.size(actor_id)
        return {
            "undo_available": count > 0,
            "undo_count": count,
            "last_action": {"kind": last.kind, "recorded_at": last.recorded_at} if last else None,
        }
