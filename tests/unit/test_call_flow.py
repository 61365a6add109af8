"""Unit tests for the call flow: landing, menus, authentication and agent contact."""
import pytest
from datetime import datetime
from unittest.mock import AsyncMock

from app.services.directory.base import DirectoryError, DirectoryProvider
from app.services.ivr.call_flow import CallFlow, Turn
from app.services.ivr.stages import DialogState, Purpose, VoiceMailReason
from app.services.session.call_session import CallSession
from app.services.session.in_memory_store import InMemorySessionStore

VOICE = "/webhooks/voice"

SYSTEM_ERROR = "Sorry, there is a system error."
PIN_RETRY = "The PIN you have entered is incorrect, please try again."
PIN_STOP = "Sorry, the PIN you have entered is incorrect. Goodbye."


def turn(digits=None, call_sid="CA1", lang_pref=None):
    return Turn(call_sid=call_sid, digits=digits, lang_pref=lang_pref)


async def authenticate(flow, account_digits="3141592653589", pin="271828", purpose=Purpose.ENQUIRY_BALANCE):
    await flow.check_account_id(turn(account_digits), purpose)
    return await flow.check_pin(turn(pin), purpose)


class TestLanding:
    """Test the greeting."""

    @pytest.mark.asyncio
    async def test_bilingual_greeting(self, call_flow):
        dialog = await call_flow.landing(turn())

        assert dialog.spoken == [
            "Good morning. Welcome to Test Bank.",
            "早晨. 歡迎使用測試銀行.",
        ]
        assert dialog.steps[1].language == "zh-HK"
        assert dialog.redirect_url == f"{VOICE}/choose_lang"

    @pytest.mark.asyncio
    async def test_greeting_follows_clock(self, session_store, test_directory, test_settings):
        evening = lambda: datetime(2026, 10, 19, 21, 0)
        flow = CallFlow(session_store, test_directory, settings=test_settings, clock=evening)

        dialog = await flow.landing(turn())
        assert dialog.spoken[0] == "Good evening. Welcome to Test Bank."


class TestChooseLanguage:
    """Test the language menu."""

    @pytest.mark.asyncio
    async def test_first_visit_prompts_both_languages(self, call_flow):
        dialog = await call_flow.choose_language(turn())

        (gather,) = dialog.gathers
        assert gather.num_digits == 1
        assert gather.action == f"{VOICE}/choose_lang"
        assert dialog.spoken == ["For English, press 1.", "廣東話, 請按二字."]
        assert dialog.redirect_url == f"{VOICE}/choose_lang"

    @pytest.mark.asyncio
    async def test_select_cantonese(self, call_flow, session_store):
        dialog = await call_flow.choose_language(turn("2"))

        assert session_store.data["CA1:langpref"] == "2"
        assert dialog.redirect_url == f"{VOICE}/menu"
        assert dialog.gathers == []

    @pytest.mark.asyncio
    async def test_invalid_choice_asks_again(self, call_flow, session_store):
        dialog = await call_flow.choose_language(turn("7"))

        assert "CA1:langpref" not in session_store.data
        assert dialog.spoken[:2] == ["Please select a language.", "請選擇語言."]
        assert len(dialog.gathers) == 1
        assert dialog.redirect_url == f"{VOICE}/choose_lang"

    @pytest.mark.asyncio
    async def test_store_failure_answers_system_error(
        self, failing_store, test_directory, test_settings
    ):
        flow = CallFlow(failing_store, test_directory, settings=test_settings)
        dialog = await flow.choose_language(turn("1"))

        assert dialog.spoken == [SYSTEM_ERROR]
        assert dialog.redirect_url == f"{VOICE}/menu"


class TestMainMenu:
    """Test the main menu."""

    @pytest.mark.asyncio
    async def test_menu_prompt(self, call_flow):
        dialog = await call_flow.main_menu(turn())

        assert dialog.spoken[0] == "Please select a service:"
        assert len(dialog.spoken) == 5
        assert dialog.gathers[0].action == f"{VOICE}/menu"
        assert dialog.redirect_url == f"{VOICE}/menu"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "digit,target",
        [
            ("1", "/prompt_accid/enquiry_balance"),
            ("2", "/prompt_accid/fund_transfer"),
            ("3", "/choose_lang"),
            ("4", "/contact_csr"),
        ],
    )
    async def test_menu_choices(self, call_flow, digit, target):
        dialog = await call_flow.main_menu(turn(digit))

        assert dialog.redirect_url == f"{VOICE}{target}"
        assert dialog.spoken == []

    @pytest.mark.asyncio
    async def test_invalid_choice_repeats_menu(self, call_flow):
        dialog = await call_flow.main_menu(turn("8"))

        assert dialog.spoken[0] == "Invalid input, please try again."
        assert dialog.spoken[1] == "Please select a service:"
        assert dialog.redirect_url == f"{VOICE}/menu"

    @pytest.mark.asyncio
    async def test_menu_in_chosen_language(self, call_flow):
        await call_flow.choose_language(turn("2"))
        dialog = await call_flow.main_menu(turn())

        assert dialog.spoken[0] == "請選擇服務:"
        assert all(p.language == "zh-HK" for p in dialog.gathers[0].prompts)

    @pytest.mark.asyncio
    async def test_request_language_used_without_session(self, call_flow):
        dialog = await call_flow.main_menu(turn(lang_pref="2"))
        assert dialog.spoken[0] == "請選擇服務:"


class TestAccountIdEntry:
    """Test account id prompt and validation."""

    @pytest.mark.asyncio
    async def test_prompt(self, call_flow):
        dialog = await call_flow.prompt_account_id(turn(), Purpose.FUND_TRANSFER)

        (gather,) = dialog.gathers
        assert gather.num_digits == 13
        assert gather.finish_on_key == "*"
        assert gather.action == f"{VOICE}/prompt_accid/check/fund_transfer"
        assert dialog.redirect_url == f"{VOICE}/prompt_accid/fund_transfer"

    @pytest.mark.asyncio
    async def test_accepted_account_goes_to_pin(self, call_flow, session_store):
        dialog = await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)

        assert dialog.redirect_url == f"{VOICE}/prompt_pin/enquiry_balance"
        pending = await CallSession(session_store, "CA1").get_pending_account()
        assert pending.account_id == "314-1592653-589"
        assert await CallSession(session_store, "CA1").get_authenticated_account() is None

    @pytest.mark.asyncio
    async def test_cancel_returns_to_menu(self, call_flow):
        dialog = await call_flow.check_account_id(turn(), Purpose.ENQUIRY_BALANCE)
        assert dialog.redirect_url == f"{VOICE}/menu"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("digits", ["12345", "31415926535899", "314159265358#", "314159265358\n"])
    async def test_malformed_id_skips_directory(
        self, session_store, test_settings, digits
    ):
        directory = AsyncMock(spec=DirectoryProvider)
        flow = CallFlow(session_store, directory, settings=test_settings)

        dialog = await flow.check_account_id(turn(digits), Purpose.ENQUIRY_BALANCE)

        directory.find_account_by_formatted_id.assert_not_called()
        assert dialog.spoken == ["Incorrect. Please try again."]
        assert dialog.redirect_url == f"{VOICE}/prompt_accid/enquiry_balance"

    @pytest.mark.asyncio
    async def test_unknown_account_reprompts(self, call_flow, session_store):
        dialog = await call_flow.check_account_id(turn("9999999999999"), Purpose.FUND_TRANSFER)

        assert dialog.spoken == ["The account you have entered does not exist."]
        assert dialog.redirect_url == f"{VOICE}/prompt_accid/fund_transfer"
        session = CallSession(session_store, "CA1")
        assert await session.get_pending_account() is None
        assert await session.get_authenticated_account() is None

    @pytest.mark.asyncio
    async def test_directory_failure_answers_system_error(self, session_store, test_settings):
        directory = AsyncMock(spec=DirectoryProvider)
        directory.find_account_by_formatted_id.side_effect = DirectoryError("down")
        flow = CallFlow(session_store, directory, settings=test_settings)

        dialog = await flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)

        assert dialog.spoken == [SYSTEM_ERROR]
        assert dialog.redirect_url == f"{VOICE}/menu"


class TestPinEntry:
    """Test PIN prompt, verification and lockout."""

    @pytest.mark.asyncio
    async def test_prompt(self, call_flow):
        dialog = await call_flow.prompt_pin(turn(), Purpose.ENQUIRY_BALANCE)

        (gather,) = dialog.gathers
        assert gather.num_digits == 6
        assert gather.finish_on_key == "*"
        assert gather.action == f"{VOICE}/prompt_pin/check/enquiry_balance"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "purpose,target",
        [
            (Purpose.ENQUIRY_BALANCE, "/enquiry_balance"),
            (Purpose.FUND_TRANSFER, "/fund_transfer/select_type"),
        ],
    )
    async def test_matching_pin_continues_to_purpose(
        self, call_flow, session_store, purpose, target
    ):
        dialog = await authenticate(call_flow, purpose=purpose)

        assert dialog.redirect_url == f"{VOICE}{target}"
        account = await CallSession(session_store, "CA1").get_authenticated_account()
        assert account.account_id == "314-1592653-589"

    @pytest.mark.asyncio
    async def test_three_wrong_pins_hang_up(self, call_flow, session_store):
        """Language 1, account 3141592653589, then 000001, 000002, 000003."""
        await call_flow.choose_language(turn("1"))
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)

        first = await call_flow.check_pin(turn("000001"), Purpose.ENQUIRY_BALANCE)
        assert first.spoken == [PIN_RETRY]
        assert first.redirect_url == f"{VOICE}/prompt_pin/enquiry_balance"
        assert session_store.data["CA1:err_cnt"] == "1"

        second = await call_flow.check_pin(turn("000002"), Purpose.ENQUIRY_BALANCE)
        assert second.spoken == [PIN_RETRY]
        assert session_store.data["CA1:err_cnt"] == "2"

        third = await call_flow.check_pin(turn("000003"), Purpose.ENQUIRY_BALANCE)
        assert third.spoken == [PIN_STOP]
        assert third.hangs_up
        assert third.redirect_url is None
        assert third.gathers == []
        assert session_store.data["CA1:err_cnt"] == "3"

        session = CallSession(session_store, "CA1")
        assert await session.get_authenticated_account() is None
        assert await session.get_language() == "1"

    @pytest.mark.asyncio
    async def test_match_after_two_mismatches(self, call_flow, session_store):
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)
        await call_flow.check_pin(turn("000001"), Purpose.ENQUIRY_BALANCE)
        await call_flow.check_pin(turn("000002"), Purpose.ENQUIRY_BALANCE)

        dialog = await call_flow.check_pin(turn("271828"), Purpose.ENQUIRY_BALANCE)

        assert dialog.redirect_url == f"{VOICE}/enquiry_balance"
        assert not dialog.hangs_up
        assert session_store.data["CA1:err_cnt"] == "0"

    @pytest.mark.asyncio
    async def test_new_account_resets_failures(self, call_flow, session_store):
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)
        await call_flow.check_pin(turn("000001"), Purpose.ENQUIRY_BALANCE)
        await call_flow.check_pin(turn("000002"), Purpose.ENQUIRY_BALANCE)

        await call_flow.check_account_id(turn("1618033988749"), Purpose.ENQUIRY_BALANCE)
        dialog = await call_flow.check_pin(turn("000003"), Purpose.ENQUIRY_BALANCE)

        assert not dialog.hangs_up
        assert session_store.data["CA1:err_cnt"] == "1"

    @pytest.mark.asyncio
    async def test_reentering_same_account_keeps_failures(self, call_flow, session_store):
        """Cancelling and re-entering the same account cannot dodge the lockout."""
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)
        await call_flow.check_pin(turn("000001"), Purpose.ENQUIRY_BALANCE)
        await call_flow.check_pin(turn("000002"), Purpose.ENQUIRY_BALANCE)

        cancelled = await call_flow.check_pin(turn(), Purpose.ENQUIRY_BALANCE)
        assert cancelled.redirect_url == f"{VOICE}/menu"

        await call_flow.check_account_id(turn("3141592653589"), Purpose.FUND_TRANSFER)
        assert session_store.data["CA1:err_cnt"] == "2"

        dialog = await call_flow.check_pin(turn("000003"), Purpose.FUND_TRANSFER)
        assert dialog.spoken == [PIN_STOP]
        assert dialog.hangs_up
        assert session_store.data["CA1:err_cnt"] == "3"

    @pytest.mark.asyncio
    async def test_pin_of_other_account_rejected(self, call_flow):
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)
        dialog = await call_flow.check_pin(turn("141421"), Purpose.ENQUIRY_BALANCE)
        assert dialog.spoken == [PIN_RETRY]

    @pytest.mark.asyncio
    async def test_pin_without_account_restarts(self, call_flow):
        dialog = await call_flow.check_pin(turn("271828"), Purpose.FUND_TRANSFER)

        assert dialog.spoken == [SYSTEM_ERROR]
        assert dialog.redirect_url == f"{VOICE}/prompt_accid/fund_transfer"

    @pytest.mark.asyncio
    async def test_cancel_returns_to_menu(self, call_flow):
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)
        dialog = await call_flow.check_pin(turn(), Purpose.ENQUIRY_BALANCE)
        assert dialog.redirect_url == f"{VOICE}/menu"

    @pytest.mark.asyncio
    async def test_retry_message_in_cantonese(self, call_flow):
        await call_flow.choose_language(turn("2"))
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)
        dialog = await call_flow.check_pin(turn("000001"), Purpose.ENQUIRY_BALANCE)

        assert dialog.spoken == ["你所輸入的密碼並不正確, 請重新輸入."]
        assert dialog.steps[0].voice == "alice"

    @pytest.mark.asyncio
    async def test_calls_are_isolated(self, call_flow, session_store):
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)
        await call_flow.check_pin(turn("000001"), Purpose.ENQUIRY_BALANCE)

        await call_flow.check_account_id(turn("3141592653589", call_sid="CA2"), Purpose.ENQUIRY_BALANCE)
        dialog = await call_flow.check_pin(turn("271828", call_sid="CA2"), Purpose.ENQUIRY_BALANCE)

        assert dialog.redirect_url == f"{VOICE}/enquiry_balance"
        assert session_store.data["CA1:err_cnt"] == "1"
        assert await CallSession(session_store, "CA1").get_authenticated_account() is None


class TestBalanceEnquiry:
    """Test balance announcement and follow-up menu."""

    @pytest.mark.asyncio
    async def test_balance_announced(self, call_flow):
        await authenticate(call_flow)
        dialog = await call_flow.enquiry_balance(turn())

        assert dialog.spoken == ["Your account balance is $15,230.75."]
        assert dialog.redirect_url == f"{VOICE}/enquiry_balance/followup"

    @pytest.mark.asyncio
    async def test_balance_in_cantonese(self, call_flow):
        await call_flow.choose_language(turn("2"))
        await authenticate(call_flow, "1618033988749", "141421")
        dialog = await call_flow.enquiry_balance(turn())

        assert dialog.spoken == ["你的戶口結餘為: $820.00."]

    @pytest.mark.asyncio
    async def test_requires_authentication(self, call_flow):
        dialog = await call_flow.enquiry_balance(turn())

        assert dialog.spoken == []
        assert dialog.redirect_url == f"{VOICE}/prompt_accid/enquiry_balance"

    @pytest.mark.asyncio
    async def test_pending_account_is_not_authenticated(self, call_flow):
        await call_flow.check_account_id(turn("3141592653589"), Purpose.ENQUIRY_BALANCE)
        dialog = await call_flow.enquiry_balance(turn())

        assert dialog.redirect_url == f"{VOICE}/prompt_accid/enquiry_balance"

    @pytest.mark.asyncio
    async def test_followup_prompt(self, call_flow):
        dialog = await call_flow.enquiry_followup(turn())

        assert dialog.spoken == [
            "To enquiry another account, press 1.",
            "To transfer fund from this account, press 2.",
            "To go back to main menu, press 0.",
        ]
        assert dialog.gathers[0].action == f"{VOICE}/enquiry_balance/followup"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "digit,target",
        [
            ("1", "/prompt_accid/enquiry_balance"),
            ("2", "/fund_transfer/select_type"),
            ("0", "/menu"),
        ],
    )
    async def test_followup_choices(self, call_flow, digit, target):
        dialog = await call_flow.enquiry_followup(turn(digit))
        assert dialog.redirect_url == f"{VOICE}{target}"

    @pytest.mark.asyncio
    async def test_followup_invalid(self, call_flow):
        dialog = await call_flow.enquiry_followup(turn("5"))

        assert dialog.spoken[0] == "Invalid input, please try again."
        assert dialog.redirect_url == f"{VOICE}/enquiry_balance/followup"


class TestContactAgent:
    """Test queueing for an agent and the hold loop."""

    @pytest.mark.asyncio
    async def test_queued_when_in_service(self, call_flow, session_store):
        session_store.data["call_centre_service_status"] = "in_service"
        dialog = await call_flow.contact_agent(turn())

        assert dialog.spoken == [
            "Please hold, we are connecting you to our Customer Service representative."
        ]
        enqueue = dialog.steps[1]
        assert enqueue.queue == "support"
        assert enqueue.wait_url == f"{VOICE}/contact_csr/waiting"
        assert dialog.redirect_url == f"{VOICE}/contact_csr/voice_mail/timeout"
        assert session_store.data["CA1:hold_cnt"] == "0"

    @pytest.mark.asyncio
    async def test_voice_mail_when_closed(self, call_flow):
        dialog = await call_flow.contact_agent(turn())

        assert dialog.spoken == []
        assert dialog.redirect_url == f"{VOICE}/contact_csr/voice_mail/not_in_service"

    @pytest.mark.asyncio
    async def test_store_failure_treated_as_closed(self, failing_store, test_directory, test_settings):
        flow = CallFlow(failing_store, test_directory, settings=test_settings)
        dialog = await flow.contact_agent(turn())

        assert dialog.redirect_url == f"{VOICE}/contact_csr/voice_mail/not_in_service"

    @pytest.mark.asyncio
    async def test_hold_loop_then_leave(self, call_flow):
        for _ in range(2):
            dialog = await call_flow.waiting(turn())
            assert dialog.spoken == ["All our representatives are busy. Please stay on the line."]
            assert dialog.steps[1].url == "https://example.com/hold.mp3"
            assert dialog.steps[1].loop == 3
            assert dialog.redirect_url == f"{VOICE}/contact_csr/waiting"

        dialog = await call_flow.waiting(turn())
        assert [s.kind for s in dialog.steps] == ["leave"]

    @pytest.mark.asyncio
    async def test_hold_without_music_pauses(self, session_store, test_directory, test_settings):
        test_settings.hold_music_url = None
        flow = CallFlow(session_store, test_directory, settings=test_settings)

        dialog = await flow.waiting(turn())
        assert dialog.steps[1].kind == "pause"
        assert dialog.steps[1].length == 10

    @pytest.mark.asyncio
    async def test_waiting_with_failing_store_leaves(self, failing_store, test_directory, test_settings):
        flow = CallFlow(failing_store, test_directory, settings=test_settings)
        dialog = await flow.waiting(turn())

        assert [s.kind for s in dialog.steps] == ["leave"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "reason,text",
        [
            (VoiceMailReason.TIMEOUT, "Sorry, all our representatives are still busy. Please call again later."),
            (VoiceMailReason.NOT_IN_SERVICE, "Sorry, our Customer Service hotline is currently closed."),
        ],
    )
    async def test_voice_mail_explains_and_returns(self, call_flow, reason, text):
        dialog = await call_flow.voice_mail(turn(), reason)

        assert dialog.spoken == [text]
        assert dialog.redirect_url == f"{VOICE}/menu"

    @pytest.mark.asyncio
    async def test_connect_dials_agent(self, call_flow):
        dialog = await call_flow.connect_agent(turn())
        assert dialog.steps[0].sip == "sip:agent@example.com"

    @pytest.mark.asyncio
    async def test_connect_without_agent(self, session_store, test_directory, test_settings):
        test_settings.agent_sip_uri = None
        flow = CallFlow(session_store, test_directory, settings=test_settings)

        dialog = await flow.connect_agent(turn())
        assert dialog.redirect_url == f"{VOICE}/contact_csr/voice_mail/not_in_service"


class TestSystemError:
    """Test the shared failure answer."""

    @pytest.mark.asyncio
    async def test_localized(self):
        store = InMemorySessionStore({"CA1:langpref": "2"})
        flow = CallFlow(store, AsyncMock(spec=DirectoryProvider))

        dialog = await flow.system_error(turn())
        assert dialog.spoken == ["對不起, 系統錯誤."]
        assert dialog.redirect_url == f"{VOICE}/menu"


class TestFailSafe:
    """Test the dependency-failure guard."""

    def test_every_dialog_state_is_guarded(self):
        guarded = {
            getattr(member, "dialog_state", None) for member in vars(CallFlow).values()
        }
        assert set(DialogState) <= guarded
