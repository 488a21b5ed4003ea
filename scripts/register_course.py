#!/usr/bin/env python3
"""
Register a group's course on-chain.

Uses the group's stored price and administrator shares plus the configured
pass duration and transfer cooldown. Transient RPC failures are retried
within a bounded time budget.

Usage:
    python scripts/register_course.py --group-id 12 --owner 0xabc...
    python scripts/register_course.py --group-id 12 --owner 0xabc... --budget-ms 15000
"""

import sys
import os
import asyncio
import argparse

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config import Config
from core.context import EngineContext
from core.db import get_db_session_ctx
from core.exceptions import AlreadyRegistered, PassEngineError
from membership_engine.config.constants import DEFAULT_RETRY_BUDGET_MS, DEFAULT_RETRY_DELAY_MS
from membership_engine.services.course_registry_service import CourseRegistry
from membership_engine.services.revenue_share_service import allocate
from membership_engine.utils.retry import with_retries
from models.group import Group
from models.user import User
from onchain import ChainContracts
from utils.wallet_validator import normalize_address

import logging

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def register(group_id: int, owner_address: str, budget_ms: int, delay_ms: int) -> int:
    contracts = ChainContracts.from_config()

    with get_db_session_ctx() as session:
        return await _register(session, contracts, group_id, owner_address, budget_ms, delay_ms)


async def _register(session, contracts, group_id, owner_address, budget_ms, delay_ms) -> int:
    try:
        group = session.query(Group).filter_by(groupID=group_id).first()
        if not group:
            print(f"❌ Group {group_id} not found")
            return 1

        owner = session.query(User).filter_by(walletAddress=normalize_address(owner_address)).first()
        if not owner:
            print(f"❌ No user for wallet {owner_address}")
            return 1

        entries = [
            {"walletAddress": row.admin.walletAddress, "shareBps": row.shareBps}
            for row in group.administrators
        ]
        allocation = allocate(owner.walletAddress, entries)

        print("\n" + "=" * 80)
        print("COURSE REGISTRATION")
        print("=" * 80)
        print(f"Group: {group.name} (ID: {group.groupID})")
        print(f"Course ID: {group.subscriptionId}")
        print(f"Price: ${group.price}")
        print(f"Owner share: {allocation.ownerResidualBps} bps")
        for address, share in allocation.shares.items():
            print(f"  Admin {address}: {share} bps")

        registry = CourseRegistry(session, contracts)
        ctx = EngineContext.build(group, owner)

        try:
            tx_hash = await with_retries(
                lambda: registry.register_course(ctx, allocation),
                max_ms=budget_ms,
                delay_ms=delay_ms
            )
        except AlreadyRegistered:
            print("✅ Course already registered on-chain")
            return 0

        print(f"✅ Registered: {tx_hash}")
        return 0

    except PassEngineError as e:
        logger.error(f"Registration failed: {e.message}")
        print(f"❌ {e.message}")
        return 1


def main():
    parser = argparse.ArgumentParser(description='Register a group course on-chain')
    parser.add_argument('--group-id', type=int, required=True,
                        help='Group ID')
    parser.add_argument('--owner', required=True,
                        help='Owner wallet address (signing account)')
    parser.add_argument('--budget-ms', type=int, default=DEFAULT_RETRY_BUDGET_MS,
                        help='Total retry budget in milliseconds')
    parser.add_argument('--delay-ms', type=int, default=DEFAULT_RETRY_DELAY_MS,
                        help='Delay between attempts in milliseconds')
    args = parser.parse_args()

    Config.initialize_from_env()
    Config.validate_critical_keys()

    return asyncio.run(register(args.group_id, args.owner, args.budget_ms, args.delay_ms))


if __name__ == "__main__":
    sys.exit(main())
