# tests/conftest.py
"""
Pytest configuration and shared fixtures for the pass economy engine.

Every test gets a fresh in-memory SQLite database, a pinned engine clock and
a FakeChain bound to the configured contract addresses.

Run:
    pytest tests/ -v
    pytest tests/test_join_leave.py -v
"""
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers mappers
from config import Config
from core.context import EngineContext
from membership_engine.services.group_service import GroupService, GroupSettings
from membership_engine.services.revenue_share_service import require_user_by_wallet
from membership_engine.utils.time_machine import timeMachine
from models.base import Base
from onchain import ChainContracts
from tests.fake_chain import FakeChain

# =============================================================================
# CONSTANTS
# =============================================================================

NOW_MS = 1_700_000_000_000
NOW_S = NOW_MS // 1000
DAY_S = 24 * 3600

WALLETS = {
    'owner': "0x" + "a1" * 20,
    'member': "0x" + "b2" * 20,
    'admin': "0x" + "c3" * 20,
    'buyer': "0x" + "d4" * 20,
}

CONTRACTS = {
    'treasury': "0x" + "10" * 20,
    'usdc': "0x" + "20" * 20,
    'registrar': "0x" + "30" * 20,
    'marketplace': "0x" + "40" * 20,
    'membership': "0x" + "50" * 20,
}


# =============================================================================
# CONFIG / CLOCK
# =============================================================================

@pytest.fixture(autouse=True)
def configured():
    """Known configuration and a pinned clock for every test."""
    Config.reset()
    Config.set(Config.DATABASE_URL, "sqlite://")
    Config.set(Config.RPC_URL, "http://rpc.test")
    Config.set(Config.TREASURY_ADDRESS, CONTRACTS['treasury'])
    Config.set(Config.USDC_CONTRACT_ADDRESS, CONTRACTS['usdc'])
    Config.set(Config.REGISTRAR_CONTRACT_ADDRESS, CONTRACTS['registrar'])
    Config.set(Config.MARKETPLACE_CONTRACT_ADDRESS, CONTRACTS['marketplace'])
    Config.set(Config.MEMBERSHIP_CONTRACT_ADDRESS, CONTRACTS['membership'])
    Config.set(Config.MEMBERSHIP_DURATION_SECONDS, 30 * DAY_S)
    Config.set(Config.MEMBERSHIP_TRANSFER_COOLDOWN_SECONDS, 7 * DAY_S)
    Config.set(Config.SUBSCRIPTION_PRICE_USDC, "99")
    Config.set(Config.PLATFORM_FEE_BPS, 250)

    timeMachine.setTime(NOW_MS)
    yield
    timeMachine.resetToRealTime()
    Config.reset()


# =============================================================================
# DATABASE FIXTURES
# =============================================================================

@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    """Create database session for each test."""
    Session = sessionmaker(bind=engine, expire_on_commit=False)
    session = Session()
    yield session
    session.close()


# =============================================================================
# CHAIN FIXTURES
# =============================================================================

@pytest.fixture
def chain():
    """FakeChain gateway at the pinned clock."""
    return FakeChain(CONTRACTS, now_seconds=NOW_S)


@pytest.fixture
def contracts(chain):
    return ChainContracts.from_config(client=chain)


# =============================================================================
# USER FIXTURES
# =============================================================================

@pytest.fixture
def owner(session):
    return require_user_by_wallet(session, WALLETS['owner'])


@pytest.fixture
def member(session):
    return require_user_by_wallet(session, WALLETS['member'])


@pytest.fixture
def admin(session):
    return require_user_by_wallet(session, WALLETS['admin'])


# =============================================================================
# GROUP FIXTURES
# =============================================================================

@pytest.fixture
def group_service(session):
    """GroupService without chain verification."""
    return GroupService(session)


@pytest.fixture
def free_group(session, group_service, owner):
    group_id = group_service.create(owner.walletAddress, GroupSettings(name="Open Circle"))
    return group_service.get_group(group_id)


@pytest.fixture
def paid_group(session, group_service, owner):
    group_id = group_service.create(
        owner.walletAddress,
        GroupSettings(name="Pro Circle", price=Decimal("25"), visibility="private")
    )
    return group_service.get_group(group_id)


@pytest.fixture
def make_ctx():
    """Build an EngineContext at the pinned clock (or a given instant)."""

    def _build(group, viewer=None, now=NOW_MS):
        return EngineContext.build(group, viewer, now)

    return _build
