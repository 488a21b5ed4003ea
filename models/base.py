# passhub/models/base.py
"""
Base model and mixins for all database tables.
All timestamps are epoch milliseconds.
"""
from sqlalchemy.orm import declarative_base
from sqlalchemy import Column, BigInteger

Base = declarative_base()


def _get_current_time_ms():
    """Lazy import to avoid circular dependency."""
    from membership_engine.utils.time_machine import timeMachine
    return timeMachine.now_ms


class AuditMixin:
    createdAt = Column(BigInteger, default=_get_current_time_ms)
    updatedAt = Column(BigInteger, default=_get_current_time_ms, onupdate=_get_current_time_ms)
