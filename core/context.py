# passhub/core/context.py
"""
Explicit per-call engine context.

Every engine operation receives the group being acted on, the acting viewer
(if any) and the instant "now" in epoch milliseconds, instead of reading a
"current group" from ambient state.
"""
from dataclasses import dataclass
from typing import Optional

from models.group import Group
from models.user import User


@dataclass(frozen=True)
class EngineContext:
    group: Group
    viewer: Optional[User]
    now: int

    @classmethod
    def build(cls, group: Group, viewer: Optional[User] = None, now: Optional[int] = None) -> "EngineContext":
        """Create a context, defaulting now to the engine clock."""
        if now is None:
            from membership_engine.utils.time_machine import timeMachine
            now = timeMachine.now_ms
        return cls(group=group, viewer=viewer, now=now)

    @property
    def viewer_id(self) -> Optional[int]:
        return self.viewer.userID if self.viewer is not None else None

    @property
    def is_owner(self) -> bool:
        return self.viewer is not None and self.group.ownerID == self.viewer.userID
