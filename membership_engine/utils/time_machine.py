# membership_engine/utils/time_machine.py
"""
Virtual clock for the engine.
Real UTC time by default; tests pin it with setTime().
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Union

logger = logging.getLogger(__name__)


class TimeMachine:
    """Clock with an optional virtual override."""

    def __init__(self):
        self._virtualTime: Optional[datetime] = None
        self._isTestMode = False

    @property
    def now(self) -> datetime:
        """Current time (virtual in test mode), timezone-aware UTC."""
        if self._isTestMode and self._virtualTime is not None:
            return self._virtualTime
        return datetime.now(timezone.utc)

    @property
    def now_ms(self) -> int:
        """Current time as epoch milliseconds."""
        return int(self.now.timestamp() * 1000)

    @property
    def isTestMode(self) -> bool:
        return self._isTestMode

    def setTime(self, value: Union[datetime, int]) -> None:
        """
        Switch to virtual time.

        Args:
            value: aware datetime or epoch milliseconds
        """
        if isinstance(value, int):
            value = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        elif value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)

        self._virtualTime = value
        self._isTestMode = True
        logger.info(f"Virtual time set to {value.isoformat()}")

    def resetToRealTime(self) -> None:
        """Leave test mode."""
        self._virtualTime = None
        self._isTestMode = False
        logger.info("Time machine reset to real time")


timeMachine = TimeMachine()
