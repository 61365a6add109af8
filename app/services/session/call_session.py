"""Typed per-call session on top of the session store."""
import logging
from typing import Optional

from pydantic import ValidationError

from app.services.ivr.localization import DEFAULT_LANGUAGE, Language
from app.services.session.base import SessionStore, SessionStoreError
from app.services.session.models import (
    AccountCandidate,
    AccountCandidates,
    SessionAccount,
)

logger = logging.getLogger(__name__)

LANGUAGE_KEY = "langpref"
PENDING_ACCOUNT_KEY = "pending_acc"
AUTH_ACCOUNT_KEY = "auth_acc"
ERROR_COUNT_KEY = "err_cnt"
ACCOUNT_CANDIDATES_KEY = "acc_details"
TRANSFER_TARGET_KEY = "transfer_target"
HOLD_COUNT_KEY = "hold_cnt"

SERVICE_STATUS_KEY = "call_centre_service_status"


class CallSession:
    """State of one call, keyed by its call SID.

    Nothing is cached locally: every accessor goes to the store, so turns of
    the same call can be served by any worker. Missing keys read as "not set".
    """

    def __init__(self, store: SessionStore, call_sid: str):
        self.store = store
        self.call_sid = call_sid

    def _key(self, field: str) -> str:
        return f"{self.call_sid}:{field}"

    # Language

    async def get_language(self, fallback: Optional[str] = None) -> Language:
        """Get the caller's language.

        Falls back to ``fallback`` (the request's own LangPref), then English,
        when nothing usable is stored or the store is unreachable.
        """
        stored = None
        try:
            stored = await self.store.get(self._key(LANGUAGE_KEY))
        except SessionStoreError as e:
            logger.warning(
                f"[SESSION] Language lookup failed, using fallback - CallSid: {self.call_sid}, "
                f"Error: {e}"
            )
        return Language.parse(stored) or Language.parse(fallback) or DEFAULT_LANGUAGE

    async def set_language(self, language: Language) -> None:
        await self.store.set(self._key(LANGUAGE_KEY), language.value)

    # Authentication

    async def begin_authentication(self, account: SessionAccount) -> None:
        """Start a new authentication attempt for ``account``.

        Drops any previously authenticated account along with the transfer
        state built for it. The PIN error counter restarts only when the
        account differs from the pending one, so re-entering the same account
        id never clears its lockout count.
        """
        previous = await self.get_pending_account()
        await self.store.set(self._key(AUTH_ACCOUNT_KEY), "")
        await self.store.set(self._key(ACCOUNT_CANDIDATES_KEY), "")
        await self.store.set(self._key(TRANSFER_TARGET_KEY), "")
        if previous is None or previous.account_id != account.account_id:
            await self.store.set(self._key(ERROR_COUNT_KEY), "0")
        await self.store.set(self._key(PENDING_ACCOUNT_KEY), account.model_dump_json())

    async def get_pending_account(self) -> Optional[SessionAccount]:
        """Get the account awaiting PIN verification."""
        return await self._get_model(PENDING_ACCOUNT_KEY, SessionAccount)

    async def complete_authentication(self, account: SessionAccount) -> None:
        """Mark ``account`` as authenticated after a PIN match."""
        await self.store.set(self._key(ERROR_COUNT_KEY), "0")
        await self.store.set(self._key(AUTH_ACCOUNT_KEY), account.model_dump_json())

    async def get_authenticated_account(self) -> Optional[SessionAccount]:
        return await self._get_model(AUTH_ACCOUNT_KEY, SessionAccount)

    async def record_pin_failure(self) -> int:
        """Count a PIN mismatch and return the number of failures so far."""
        return await self.store.increment(self._key(ERROR_COUNT_KEY))

    async def get_error_count(self) -> int:
        raw = await self.store.get(self._key(ERROR_COUNT_KEY))
        try:
            return int(raw) if raw else 0
        except ValueError:
            logger.warning(
                f"[SESSION] Ignoring malformed error count - CallSid: {self.call_sid}"
            )
            return 0

    # Fund transfer

    async def save_account_candidates(self, candidates: AccountCandidates) -> None:
        await self.store.set(
            self._key(ACCOUNT_CANDIDATES_KEY), candidates.model_dump_json()
        )

    async def get_account_candidates(self) -> Optional[AccountCandidates]:
        return await self._get_model(ACCOUNT_CANDIDATES_KEY, AccountCandidates)

    async def save_transfer_target(self, target: AccountCandidate) -> None:
        await self.store.set(self._key(TRANSFER_TARGET_KEY), target.model_dump_json())

    async def get_transfer_target(self) -> Optional[AccountCandidate]:
        return await self._get_model(TRANSFER_TARGET_KEY, AccountCandidate)

    # Customer service

    async def next_hold_loop(self) -> int:
        """Count one more pass through the hold loop."""
        return await self.store.increment(self._key(HOLD_COUNT_KEY))

    async def reset_hold_loops(self) -> None:
        await self.store.set(self._key(HOLD_COUNT_KEY), "0")

    async def _get_model(self, field: str, model):
        raw = await self.store.get(self._key(field))
        if not raw:
            return None
        try:
            return model.model_validate_json(raw)
        except ValidationError:
            logger.warning(
                f"[SESSION] Discarding malformed '{field}' - CallSid: {self.call_sid}"
            )
            return None


async def is_call_centre_in_service(store: SessionStore) -> bool:
    """Check whether agents are currently taking calls."""
    return (await store.get(SERVICE_STATUS_KEY)) == "in_service"
