"""Dialog states and the enums that parameterize them."""
from enum import Enum


class DialogState(str, Enum):
    """Dialog screens guarded by the system-error fallback."""

    CHOOSE_LANGUAGE = "choose_language"
    MAIN_MENU = "main_menu"
    PROMPT_ACCOUNT_ID = "prompt_account_id"
    CHECK_ACCOUNT_ID = "check_account_id"
    PROMPT_PIN = "prompt_pin"
    CHECK_PIN = "check_pin"
    ENQUIRY_BALANCE = "enquiry_balance"
    ENQUIRY_FOLLOWUP = "enquiry_followup"
    SELECT_TRANSFER_TYPE = "select_transfer_type"
    SELECT_TRANSFER_ACCOUNT = "select_transfer_account"
    CHOOSE_TRANSFER_ACCOUNT = "choose_transfer_account"
    CONTACT_AGENT = "contact_agent"

    def __str__(self) -> str:
        """Return the string value of the state."""
        return self.value


class Purpose(str, Enum):
    """Why the caller is authenticating; decides where a PIN match leads."""

    ENQUIRY_BALANCE = "enquiry_balance"
    FUND_TRANSFER = "fund_transfer"

    @property
    def continuation(self) -> str:
        """Path (relative to the webhook prefix) to continue at once authenticated."""
        return _CONTINUATIONS[self]

    def __str__(self) -> str:
        return self.value


_CONTINUATIONS = {
    Purpose.ENQUIRY_BALANCE: "/enquiry_balance",
    Purpose.FUND_TRANSFER: "/fund_transfer/select_type",
}


class TransferType(str, Enum):
    """Transfer destination family, keyed by the digit that selects it."""

    OWN = "1"
    ALLOWED = "2"


class VoiceMailReason(str, Enum):
    """Why the caller could not reach an agent."""

    TIMEOUT = "timeout"
    NOT_IN_SERVICE = "not_in_service"
