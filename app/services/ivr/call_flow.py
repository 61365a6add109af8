"""Call flow state machine for the banking IVR.

Each public coroutine handles one dialog screen: it reads the caller's
digits, consults the session store and the account directory, and returns
the ``Dialog`` to play next. Turns are linked only by the redirect and gather
targets inside those dialogs; all state between turns lives in the session
store.
"""
import functools
import logging
from datetime import datetime
from typing import Callable, Dict, Optional
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from app.core.config import Settings, settings as default_settings
from app.services.directory.base import DirectoryError, DirectoryProvider
from app.services.ivr.dialog import Dialog
from app.services.ivr.localization import (
    ABORT_OPERATION,
    AUTH_ERRORS,
    BALANCE_ANSWER,
    CHOOSE_ACCOUNT_PROMPT,
    CHOOSE_LANGUAGE,
    ENQUEUE_PROMPT,
    ENQUIRY_FOLLOWUP_ITEMS,
    EXPLAIN_CANT_CONTACT,
    GREETINGS,
    HOLD_PROMPT,
    LAST_STEP,
    MAIN_MENU_ITEMS,
    MENU_HEADER,
    NO_ACCOUNT,
    PROMPT_ACCOUNT_ID,
    PROMPT_PIN,
    SELECT_LANGUAGE_AGAIN,
    SELECT_TRANSFER_TYPE_ITEMS,
    TRANSFER_TARGET_SELECTED,
    WELCOME,
    Language,
    greeting_period,
    select_text,
    speak,
)
from app.services.ivr.menu import compose_menu, dispatch_menu, jump, please_enter_again
from app.services.ivr.stages import DialogState, Purpose, TransferType, VoiceMailReason
from app.services.ivr.validator import (
    ACCOUNT_ID_DIGITS,
    PIN_DIGITS,
    format_account_id,
    validate_numeric,
)
from app.services.session.base import SessionStore, SessionStoreError
from app.services.session.call_session import CallSession, is_call_centre_in_service
from app.services.session.models import AccountCandidate, AccountCandidates, SessionAccount

logger = logging.getLogger(__name__)

ABORT_KEY = "*"


class Turn(BaseModel):
    """One webhook request from the carrier."""

    call_sid: str
    digits: Optional[str] = None
    lang_pref: Optional[str] = None


def fail_safe(state: DialogState):
    """Answer dependency failures with the system-error dialog."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self: "CallFlow", turn: Turn, *args, **kwargs) -> Dialog:
            try:
                return await func(self, turn, *args, **kwargs)
            except (SessionStoreError, DirectoryError) as e:
                logger.error(
                    f"[CALL FLOW] Dependency failure in {state} - CallSid: {turn.call_sid}, "
                    f"Error: {type(e).__name__}: {e}",
                    exc_info=True,
                )
                return await self.system_error(turn)

        wrapper.dialog_state = state
        return wrapper

    return decorator


class CallFlow:
    """Drives one call through language choice, authentication and services."""

    def __init__(
        self,
        store: SessionStore,
        directory: DirectoryProvider,
        settings: Optional[Settings] = None,
        base_path: str = "/webhooks/voice",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.directory = directory
        self.settings = settings or default_settings
        self.base_path = base_path.rstrip("/")
        self.clock = clock or (lambda: datetime.now(ZoneInfo(self.settings.bank_timezone)))

    def url(self, path: str) -> str:
        """Absolute webhook path for a dialog screen."""
        return f"{self.base_path}{path}"

    def session(self, call_sid: str) -> CallSession:
        return CallSession(self.store, call_sid)

    async def _begin(self, turn: Turn):
        session = self.session(turn.call_sid)
        language = await session.get_language(fallback=turn.lang_pref)
        return session, language, Dialog()

    async def system_error(self, turn: Turn) -> Dialog:
        """Generic failure answer: apologize and go back to the main menu."""
        session = self.session(turn.call_sid)
        language = await session.get_language(fallback=turn.lang_pref)
        dialog = Dialog()
        speak(dialog, language, select_text(AUTH_ERRORS["system_err"], language))
        dialog.redirect(self.url("/menu"))
        return dialog

    # Landing and language

    async def landing(self, turn: Turn) -> Dialog:
        """Greet the caller in both languages, then ask for a language."""
        dialog = Dialog()
        period = greeting_period(self.clock().hour)
        bank_names = {"en-US": self.settings.bank_name, "zh-HK": self.settings.bank_name_zh}
        for language in Language:
            welcome = select_text(WELCOME, language)(select_text(bank_names, language))
            speak(dialog, language, f"{select_text(GREETINGS[period], language)} {welcome}")
        dialog.pause(2)
        dialog.redirect(self.url("/choose_lang"))
        logger.info(f"[CALL FLOW] Call landed - CallSid: {turn.call_sid}, Period: {period}")
        return dialog

    @fail_safe(DialogState.CHOOSE_LANGUAGE)
    async def choose_language(self, turn: Turn) -> Dialog:
        session = self.session(turn.call_sid)
        dialog = Dialog()

        async def set_language(digit: str, dialog: Dialog) -> None:
            language = Language(digit)
            await session.set_language(language)
            logger.info(
                f"[CALL FLOW] Language selected - CallSid: {turn.call_sid}, "
                f"Language: {language.locale}"
            )
            dialog.redirect(self.url("/menu"))

        def select_again(dialog: Dialog) -> None:
            for language in Language:
                speak(dialog, language, select_text(SELECT_LANGUAGE_AGAIN, language))
            dialog.pause(1)

        handlers = {language.value: set_language for language in Language}
        if not await dispatch_menu(turn.digits, dialog, handlers, select_again):
            gather = dialog.gather(num_digits=1, action=self.url("/choose_lang"))
            for language in Language:
                speak(gather, language, select_text(CHOOSE_LANGUAGE, language))
            dialog.redirect(self.url("/choose_lang"))
        return dialog

    @fail_safe(DialogState.MAIN_MENU)
    async def main_menu(self, turn: Turn) -> Dialog:
        _, language, dialog = await self._begin(turn)
        handlers = {
            "1": jump(self.url(f"/prompt_accid/{Purpose.ENQUIRY_BALANCE.value}")),
            "2": jump(self.url(f"/prompt_accid/{Purpose.FUND_TRANSFER.value}")),
            "3": jump(self.url("/choose_lang")),
            "4": jump(self.url("/contact_csr")),
        }
        if not await dispatch_menu(
            turn.digits, dialog, handlers, please_enter_again(language)
        ):
            compose_menu(dialog, self.url("/menu"), MENU_HEADER, MAIN_MENU_ITEMS, language)
            dialog.redirect(self.url("/menu"))
        return dialog

    # Authentication

    @fail_safe(DialogState.PROMPT_ACCOUNT_ID)
    async def prompt_account_id(self, turn: Turn, purpose: Purpose) -> Dialog:
        _, language, dialog = await self._begin(turn)
        gather = dialog.gather(
            num_digits=ACCOUNT_ID_DIGITS,
            action=self.url(f"/prompt_accid/check/{purpose.value}"),
            finish_on_key=ABORT_KEY,
        )
        speak(gather, language, select_text(PROMPT_ACCOUNT_ID, language))
        dialog.redirect(self.url(f"/prompt_accid/{purpose.value}"))
        return dialog

    @fail_safe(DialogState.CHECK_ACCOUNT_ID)
    async def check_account_id(self, turn: Turn, purpose: Purpose) -> Dialog:
        session, language, dialog = await self._begin(turn)
        retry_url = self.url(f"/prompt_accid/{purpose.value}")
        digits = turn.digits

        if not digits:
            dialog.redirect(self.url("/menu"))
            return dialog

        if not validate_numeric(digits, ACCOUNT_ID_DIGITS):
            logger.info(
                f"[CALL FLOW] Malformed account id - CallSid: {turn.call_sid}, "
                f"Length: {len(digits)}"
            )
            speak(dialog, language, select_text(AUTH_ERRORS["incorrect"], language))
            dialog.redirect(retry_url)
            return dialog

        account_id = format_account_id(digits)
        record = await self.directory.find_account_by_formatted_id(account_id)
        if record is None:
            logger.info(
                f"[CALL FLOW] Account not found - CallSid: {turn.call_sid}, Account: {account_id}"
            )
            speak(dialog, language, select_text(AUTH_ERRORS["account_not_found"], language))
            dialog.redirect(retry_url)
            return dialog

        await session.begin_authentication(
            SessionAccount(
                account_id=record.account_id,
                pin=record.pin,
                balance=record.balance,
                owner_ref=record.owner_ref,
            )
        )
        logger.info(
            f"[CALL FLOW] Account accepted, awaiting PIN - CallSid: {turn.call_sid}, "
            f"Account: {account_id}, Purpose: {purpose.value}"
        )
        dialog.redirect(self.url(f"/prompt_pin/{purpose.value}"))
        return dialog

    @fail_safe(DialogState.PROMPT_PIN)
    async def prompt_pin(self, turn: Turn, purpose: Purpose) -> Dialog:
        _, language, dialog = await self._begin(turn)
        gather = dialog.gather(
            num_digits=PIN_DIGITS,
            action=self.url(f"/prompt_pin/check/{purpose.value}"),
            finish_on_key=ABORT_KEY,
        )
        speak(gather, language, select_text(PROMPT_PIN, language))
        dialog.redirect(self.url(f"/prompt_pin/{purpose.value}"))
        return dialog

    @fail_safe(DialogState.CHECK_PIN)
    async def check_pin(self, turn: Turn, purpose: Purpose) -> Dialog:
        session, language, dialog = await self._begin(turn)

        if not turn.digits:
            dialog.redirect(self.url("/menu"))
            return dialog

        pending = await session.get_pending_account()
        if pending is None:
            logger.warning(
                f"[CALL FLOW] No pending account at PIN check - CallSid: {turn.call_sid}"
            )
            speak(dialog, language, select_text(AUTH_ERRORS["system_err"], language))
            dialog.redirect(self.url(f"/prompt_accid/{purpose.value}"))
            return dialog

        if turn.digits == pending.pin:
            await session.complete_authentication(pending)
            logger.info(
                f"[CALL FLOW] PIN accepted - CallSid: {turn.call_sid}, "
                f"Account: {pending.account_id}"
            )
            dialog.redirect(self.url(purpose.continuation))
            return dialog

        failures = await session.record_pin_failure()
        logger.warning(
            f"[CALL FLOW] PIN mismatch - CallSid: {turn.call_sid}, "
            f"Account: {pending.account_id}, Failures: {failures}"
        )
        if failures < self.settings.max_pin_attempts:
            speak(dialog, language, select_text(AUTH_ERRORS["pwd_incorrect_retry"], language))
            dialog.redirect(self.url(f"/prompt_pin/{purpose.value}"))
        else:
            speak(dialog, language, select_text(AUTH_ERRORS["pwd_incorrect_stop"], language))
            dialog.hangup()
            logger.warning(
                f"[CALL FLOW] PIN attempts exhausted, hanging up - CallSid: {turn.call_sid}"
            )
        return dialog

    # Balance enquiry

    @fail_safe(DialogState.ENQUIRY_BALANCE)
    async def enquiry_balance(self, turn: Turn) -> Dialog:
        session, language, dialog = await self._begin(turn)
        account = await session.get_authenticated_account()
        if account is None:
            dialog.redirect(self.url(f"/prompt_accid/{Purpose.ENQUIRY_BALANCE.value}"))
            return dialog

        speak(dialog, language, select_text(BALANCE_ANSWER, language)(account.balance))
        dialog.redirect(self.url("/enquiry_balance/followup"))
        return dialog

    @fail_safe(DialogState.ENQUIRY_FOLLOWUP)
    async def enquiry_followup(self, turn: Turn) -> Dialog:
        _, language, dialog = await self._begin(turn)
        handlers = {
            "1": jump(self.url(f"/prompt_accid/{Purpose.ENQUIRY_BALANCE.value}")),
            "2": jump(self.url("/fund_transfer/select_type")),
            "0": jump(self.url("/menu")),
        }
        if not await dispatch_menu(
            turn.digits, dialog, handlers, please_enter_again(language)
        ):
            compose_menu(
                dialog,
                self.url("/enquiry_balance/followup"),
                None,
                ENQUIRY_FOLLOWUP_ITEMS,
                language,
            )
            dialog.redirect(self.url("/enquiry_balance/followup"))
        return dialog

    # Fund transfer

    @fail_safe(DialogState.SELECT_TRANSFER_TYPE)
    async def select_transfer_type(self, turn: Turn) -> Dialog:
        session, language, dialog = await self._begin(turn)
        if await session.get_authenticated_account() is None:
            dialog.redirect(self.url(f"/prompt_accid/{Purpose.FUND_TRANSFER.value}"))
            return dialog

        compose_menu(
            dialog,
            self.url("/fund_transfer/select_account"),
            None,
            SELECT_TRANSFER_TYPE_ITEMS,
            language,
        )
        dialog.redirect(self.url("/fund_transfer/select_type"))
        return dialog

    @fail_safe(DialogState.SELECT_TRANSFER_ACCOUNT)
    async def select_transfer_account(self, turn: Turn) -> Dialog:
        session, language, dialog = await self._begin(turn)

        async def list_accounts(digit: str, dialog: Dialog) -> None:
            await self._list_transfer_accounts(
                session, TransferType(digit), dialog, language
            )

        handlers = {
            TransferType.OWN.value: list_accounts,
            TransferType.ALLOWED.value: list_accounts,
            "0": jump(self.url("/menu")),
        }
        if not await dispatch_menu(
            turn.digits, dialog, handlers, please_enter_again(language)
        ):
            dialog.redirect(self.url("/fund_transfer/select_type"))
        return dialog

    async def _list_transfer_accounts(
        self,
        session: CallSession,
        transfer_type: TransferType,
        dialog: Dialog,
        language: Language,
    ) -> None:
        """Work out where the caller may transfer to and offer the chosen family."""
        account = await session.get_authenticated_account()
        if account is None:
            dialog.redirect(self.url(f"/prompt_accid/{Purpose.FUND_TRANSFER.value}"))
            return

        customer = await self.directory.find_customer_by_ref(account.owner_ref)
        if customer is None:
            logger.error(
                f"[CALL FLOW] Owner record missing - CallSid: {session.call_sid}, "
                f"Owner: {account.owner_ref}"
            )
            speak(dialog, language, select_text(AUTH_ERRORS["system_err"], language))
            dialog.redirect(self.url("/menu"))
            return

        own_refs = set(customer.account_refs)
        refs = customer.account_refs + [
            ref for ref in customer.allowed_transfer_refs if ref not in own_refs
        ]
        records = await self.directory.find_accounts_by_refs(
            refs, self.settings.transfer_account_limit
        )

        candidates = AccountCandidates(transfer_type=transfer_type)
        for record in records:
            if record.account_id == account.account_id:
                continue
            candidate = AccountCandidate(record_ref=record.record_ref, account_id=record.account_id)
            if record.record_ref in own_refs:
                candidates.own.append(candidate)
            else:
                candidates.allowed.append(candidate)

        await session.save_account_candidates(candidates)
        logger.info(
            f"[CALL FLOW] Transfer candidates - CallSid: {session.call_sid}, "
            f"Own: {len(candidates.own)}, Allowed: {len(candidates.allowed)}"
        )
        self._offer_transfer_accounts(dialog, candidates, language)

    def _offer_transfer_accounts(
        self, dialog: Dialog, candidates: AccountCandidates, language: Language
    ) -> None:
        target = self.url("/fund_transfer/choose_account")
        choices = candidates.for_type(candidates.transfer_type)
        if not choices:
            compose_menu(dialog, target, NO_ACCOUNT, [LAST_STEP, ABORT_OPERATION], language)
        else:
            items = [{lang.locale: c.account_id for lang in Language} for c in choices]
            compose_menu(
                dialog,
                target,
                CHOOSE_ACCOUNT_PROMPT,
                items + [LAST_STEP, ABORT_OPERATION],
                language,
            )
        dialog.redirect(target)

    @fail_safe(DialogState.CHOOSE_TRANSFER_ACCOUNT)
    async def choose_transfer_account(self, turn: Turn) -> Dialog:
        session, language, dialog = await self._begin(turn)
        if await session.get_authenticated_account() is None:
            dialog.redirect(self.url(f"/prompt_accid/{Purpose.FUND_TRANSFER.value}"))
            return dialog

        candidates = await session.get_account_candidates()
        if candidates is None or candidates.transfer_type is None:
            dialog.redirect(self.url("/fund_transfer/select_type"))
            return dialog
        choices = candidates.for_type(candidates.transfer_type)

        async def choose(digit: str, dialog: Dialog) -> None:
            target = choices[int(digit) - 1]
            await session.save_transfer_target(target)
            logger.info(
                f"[CALL FLOW] Transfer target chosen - CallSid: {turn.call_sid}, "
                f"Target: {target.account_id}"
            )
            speak(dialog, language, select_text(TRANSFER_TARGET_SELECTED, language)(target.account_id))
            dialog.redirect(self.url("/menu"))

        handlers: Dict[str, Callable] = {
            str(position): choose for position in range(1, len(choices) + 1)
        }
        handlers[LAST_STEP["key"]] = jump(self.url("/fund_transfer/select_type"))
        handlers[ABORT_OPERATION["key"]] = jump(self.url("/menu"))

        if not await dispatch_menu(
            turn.digits, dialog, handlers, please_enter_again(language)
        ):
            self._offer_transfer_accounts(dialog, candidates, language)
        return dialog

    # Customer service

    @fail_safe(DialogState.CONTACT_AGENT)
    async def contact_agent(self, turn: Turn) -> Dialog:
        session, language, dialog = await self._begin(turn)
        try:
            in_service = await is_call_centre_in_service(self.store)
        except SessionStoreError as e:
            logger.warning(
                f"[CALL FLOW] Service status unavailable, treating as closed - "
                f"CallSid: {turn.call_sid}, Error: {e}"
            )
            in_service = False

        if not in_service:
            dialog.redirect(self.url(f"/contact_csr/voice_mail/{VoiceMailReason.NOT_IN_SERVICE.value}"))
            return dialog

        await session.reset_hold_loops()
        speak(dialog, language, select_text(ENQUEUE_PROMPT, language))
        dialog.enqueue(self.settings.support_queue, self.url("/contact_csr/waiting"))
        dialog.redirect(self.url(f"/contact_csr/voice_mail/{VoiceMailReason.TIMEOUT.value}"))
        logger.info(
            f"[CALL FLOW] Caller queued for agent - CallSid: {turn.call_sid}, "
            f"Queue: {self.settings.support_queue}"
        )
        return dialog

    async def waiting(self, turn: Turn) -> Dialog:
        """Hold loop played while the caller waits in the agent queue."""
        session, language, dialog = await self._begin(turn)
        try:
            loops = await session.next_hold_loop()
        except SessionStoreError as e:
            logger.warning(
                f"[CALL FLOW] Hold counter unavailable, leaving queue - "
                f"CallSid: {turn.call_sid}, Error: {e}"
            )
            dialog.leave()
            return dialog

        if loops > self.settings.max_hold_loops:
            logger.info(f"[CALL FLOW] Hold limit reached - CallSid: {turn.call_sid}")
            dialog.leave()
            return dialog

        speak(dialog, language, select_text(HOLD_PROMPT, language))
        if self.settings.hold_music_url:
            dialog.play(self.settings.hold_music_url, loop=3)
        else:
            dialog.pause(10)
        dialog.redirect(self.url("/contact_csr/waiting"))
        return dialog

    async def voice_mail(self, turn: Turn, reason: VoiceMailReason) -> Dialog:
        _, language, dialog = await self._begin(turn)
        speak(dialog, language, select_text(EXPLAIN_CANT_CONTACT[reason.value], language))
        dialog.pause(1)
        dialog.redirect(self.url("/menu"))
        return dialog

    async def connect_agent(self, turn: Turn) -> Dialog:
        dialog = Dialog()
        if not self.settings.agent_sip_uri:
            dialog.redirect(self.url(f"/contact_csr/voice_mail/{VoiceMailReason.NOT_IN_SERVICE.value}"))
            return dialog
        dialog.dial(self.settings.agent_sip_uri)
        return dialog
