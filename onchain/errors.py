"""
Revert-reason classification.

The chain reports every failure as an RPC error; state conditions the engine
must surface distinctly are recognised by pattern-matching the revert reason.
"""
import re
import logging
from typing import Optional

from core.exceptions import ChainRpcError, CourseNotFound, CooldownActive

logger = logging.getLogger(__name__)

COURSE_NOT_FOUND_PATTERN = re.compile(r"CourseNotFound", re.IGNORECASE)
COOLDOWN_PATTERN = re.compile(r"Cooldown(Active)?|TransferLocked", re.IGNORECASE)


def _error_text(error: ChainRpcError) -> str:
    parts = [error.message or ""]
    if error.data is not None:
        parts.append(str(error.data))
    return " ".join(parts)


def is_course_not_found(error: ChainRpcError) -> bool:
    return bool(COURSE_NOT_FOUND_PATTERN.search(_error_text(error)))


def is_cooldown_active(error: ChainRpcError) -> bool:
    return bool(COOLDOWN_PATTERN.search(_error_text(error)))


def raise_for_revert(error: ChainRpcError, course_id: Optional[int] = None) -> None:
    """
    Re-raise an RPC error as the matching on-chain state error.

    Raises:
        CourseNotFound: Revert reason names an unregistered course
        CooldownActive: Revert reason names a transfer cooldown
        ChainRpcError: Anything else, unchanged
    """
    if is_course_not_found(error):
        raise CourseNotFound(course_id) from error
    if is_cooldown_active(error):
        raise CooldownActive(available_at=0) from error
    raise error
