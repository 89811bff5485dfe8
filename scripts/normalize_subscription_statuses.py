#!/usr/bin/env python3
"""
Subscription Status Normalization Script

Rewrites legacy status spellings in ``profiles`` (cancelled, expired, trial,
odd casing) to the canonical vocabulary. Values that map to nothing are
reported and left untouched.

Usage:
    python -m scripts.normalize_subscription_statuses          # Dry run
    python -m scripts.normalize_subscription_statuses --apply  # Write changes
"""

import asyncio
import argparse
import logging

# Add parent directory to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from cyberhub.config.settings import get_settings
from cyberhub.domain.subscription import normalize_status
from cyberhub.infrastructure.db.database import DatabaseManager
from cyberhub.infrastructure.db.repositories.profile_repository import ProfileRepository

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def plan_status_rewrites(
    rows: list[tuple[str, str, int]],
) -> tuple[dict[str, str], dict[str, int]]:
    """
    Decide which raw status values to rewrite.

    Args:
        rows: (tier, raw status, count) as returned by
            ``ProfileRepository.count_by_tier_and_status``

    Returns:
        (rewrites raw -> canonical, unknown raw value -> row count)
    """
    rewrites: dict[str, str] = {}
    unknown: dict[str, int] = {}

    for _tier, raw_status, count in rows:
        canonical = normalize_status(raw_status)
        if canonical is None:
            key = raw_status if raw_status is not None else "<null>"
            unknown[key] = unknown.get(key, 0) + count
        elif canonical.value != raw_status:
            rewrites[raw_status] = canonical.value

    return rewrites, unknown


async def normalize_statuses(db: DatabaseManager, apply: bool = False) -> dict:
    """
    Normalize stored status values.

    Returns:
        Dict with normalization statistics
    """
    stats = {"rewrites": {}, "rows_rewritten": 0, "unknown": {}, "applied": apply}

    async with db.session() as session:
        repo = ProfileRepository(session)
        rows = await repo.count_by_tier_and_status()
        rewrites, unknown = plan_status_rewrites(rows)

        stats["rewrites"] = rewrites
        stats["unknown"] = unknown

        for raw_status, canonical in rewrites.items():
            pending = sum(count for _, status, count in rows if status == raw_status)

            if not apply:
                logger.info(f"[dry-run] would rewrite {pending} rows: {raw_status!r} -> {canonical!r}")
                stats["rows_rewritten"] += pending
                continue

            rewritten = await repo.rewrite_status(raw_status, canonical)
            logger.info(f"Rewrote {rewritten} rows: {raw_status!r} -> {canonical!r}")
            stats["rows_rewritten"] += rewritten

        for raw_status, count in unknown.items():
            logger.warning(f"{count} rows hold unrecognized status {raw_status!r}; left as is")

    return stats


async def main():
    parser = argparse.ArgumentParser(
        description="Rewrite legacy subscription status spellings"
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Write changes (default is a dry run)"
    )
    args = parser.parse_args()

    db = DatabaseManager(get_settings())
    try:
        stats = await normalize_statuses(db, apply=args.apply)
    finally:
        await db.close()

    print("\n=== Status Normalization Complete ===")
    print(f"Mode: {'apply' if stats['applied'] else 'dry-run'}")
    print(f"Rows {'rewritten' if stats['applied'] else 'to rewrite'}: {stats['rows_rewritten']}")
    for raw_status, canonical in stats["rewrites"].items():
        print(f"  {raw_status!r} -> {canonical!r}")
    if stats["unknown"]:
        print(f"Unrecognized values: {stats['unknown']}")


if __name__ == "__main__":
    asyncio.run(main())
