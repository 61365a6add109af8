"""Call session models."""
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel

from app.services.ivr.stages import TransferType


class SessionAccount(BaseModel):
    """Account held in the session during and after authentication."""

    account_id: str  # NNN-NNNNNNN-N
    pin: str
    balance: Decimal
    owner_ref: str


class AccountCandidate(BaseModel):
    """An account the caller may transfer funds to."""

    record_ref: str
    account_id: str


class AccountCandidates(BaseModel):
    """Transfer targets computed for the account-selection screen."""

    own: List[AccountCandidate] = []
    allowed: List[AccountCandidate] = []
    transfer_type: Optional[TransferType] = None

    def for_type(self, transfer_type: TransferType) -> List[AccountCandidate]:
        """Get the candidate list matching a transfer type."""
        if transfer_type == TransferType.OWN:
            return self.own
        return self.allowed
