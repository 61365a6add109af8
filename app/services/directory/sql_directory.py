"""SQL-backed account directory."""
import logging
from typing import List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.db.models import Account, Customer
from app.services.directory.base import (
    AccountRecord,
    CustomerRecord,
    DirectoryError,
    DirectoryProvider,
)

logger = logging.getLogger(__name__)


def _to_account_record(account: Account) -> AccountRecord:
    return AccountRecord(
        record_ref=account.record_ref,
        account_id=account.account_id,
        pin=account.pin,
        balance=account.balance,
        owner_ref=account.owner_ref,
    )


class SqlDirectoryProvider(DirectoryProvider):
    """Directory provider reading the accounts and customers tables."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_account_by_formatted_id(self, account_id: str) -> Optional[AccountRecord]:
        try:
            result = await self.db.execute(
                select(Account).where(Account.account_id == account_id).limit(1)
            )
            account = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[DIRECTORY] Account lookup failed: {e}")
            raise DirectoryError("Account lookup failed") from e
        return _to_account_record(account) if account else None

    async def find_customer_by_ref(self, record_ref: str) -> Optional[CustomerRecord]:
        try:
            result = await self.db.execute(
                select(Customer)
                .where(Customer.record_ref == record_ref)
                .options(selectinload(Customer.accounts))
            )
            customer = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"[DIRECTORY] Customer lookup failed - Ref: {record_ref}, Error: {e}")
            raise DirectoryError("Customer lookup failed") from e
        if not customer:
            return None
        return CustomerRecord(
            record_ref=customer.record_ref,
            name=customer.name,
            account_refs=[a.record_ref for a in customer.accounts],
            allowed_transfer_refs=customer.allowed_transfer_refs,
        )

    async def find_accounts_by_refs(
        self, record_refs: Sequence[str], limit: int
    ) -> List[AccountRecord]:
        if not record_refs:
            return []
        try:
            result = await self.db.execute(
                select(Account)
                .where(Account.record_ref.in_(list(record_refs)))
                .order_by(Account.id)
                .limit(limit)
            )
            accounts = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"[DIRECTORY] Account list lookup failed: {e}")
            raise DirectoryError("Account list lookup failed") from e
        return [_to_account_record(a) for a in accounts]
