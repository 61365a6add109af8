"""Account directory provider interface."""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import List, Optional, Sequence
from pydantic import BaseModel, field_validator


class DirectoryError(Exception):
    """Raised when the account directory cannot be queried."""


class AccountRecord(BaseModel):
    """Account record model."""

    record_ref: str
    account_id: str  # NNN-NNNNNNN-N
    pin: str
    balance: Decimal
    owner_ref: str


class CustomerRecord(BaseModel):
    """Customer record model."""

    record_ref: str
    name: Optional[str] = None
    account_refs: List[str] = []
    allowed_transfer_refs: List[str] = []

    @field_validator("account_refs", "allowed_transfer_refs", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        return [] if value is None else value


class DirectoryProvider(ABC):
    """Abstract base class for account directory providers."""

    @abstractmethod
    async def find_account_by_formatted_id(self, account_id: str) -> Optional[AccountRecord]:
        """Get the account whose id exactly matches ``account_id``."""
        pass

    @abstractmethod
    async def find_customer_by_ref(self, record_ref: str) -> Optional[CustomerRecord]:
        """Get a customer by record reference."""
        pass

    @abstractmethod
    async def find_accounts_by_refs(
        self, record_refs: Sequence[str], limit: int
    ) -> List[AccountRecord]:
        """Get at most ``limit`` accounts whose record reference is in ``record_refs``."""
        pass
