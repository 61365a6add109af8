"""Seed the SQL directory from a YAML file."""
import logging
from decimal import Decimal
from pathlib import Path
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import Account, Customer
from app.services.directory.in_memory_directory import load_directory_file

logger = logging.getLogger(__name__)


async def seed_directory(db: AsyncSession, directory_file: str) -> int:
    """Load customers and accounts from ``directory_file`` into empty tables.

    Returns the number of accounts inserted; 0 if the tables already had data.
    """
    existing = await db.execute(select(func.count(Account.id)))
    if existing.scalar():
        logger.info("[DIRECTORY] Accounts table not empty, skipping seed")
        return 0

    data = load_directory_file(Path(directory_file))
    for raw in data["customers"]:
        db.add(
            Customer(
                record_ref=str(raw["record_ref"]),
                name=raw.get("name"),
                allowed_transfer_refs=raw.get("allowed_transfer_refs"),
            )
        )
    await db.flush()

    for raw in data["accounts"]:
        db.add(
            Account(
                record_ref=str(raw["record_ref"]),
                account_id=str(raw["account_id"]),
                pin=str(raw["pin"]),
                balance=Decimal(str(raw.get("balance", 0))),
                owner_ref=str(raw["owner_ref"]),
            )
        )
    await db.commit()

    logger.info(f"[DIRECTORY] Seeded {len(data['accounts'])} accounts from {directory_file}")
    return len(data["accounts"])
