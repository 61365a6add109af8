"""Bilingual (English / Cantonese) prompt tables.

Every table is a dict keyed by locale tag, and every table defines both
supported locales. Values are either plain strings or callables that build a
string from their arguments. ``select_text`` raises ``KeyError`` on a missing
entry; that is a defect in this module, not something to recover from at
runtime.
"""
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union


class Language(str, Enum):
    """Supported caller languages, keyed by the digit that selects them."""

    ENGLISH = "1"
    CANTONESE = "2"

    @property
    def locale(self) -> str:
        """Locale tag used to index prompt tables."""
        return _LOCALES[self]

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Language"]:
        """Parse a stored or submitted language code, None if not recognized."""
        if not value:
            return None
        try:
            return cls(value.strip())
        except ValueError:
            return None


_LOCALES = {
    Language.ENGLISH: "en-US",
    Language.CANTONESE: "zh-HK",
}

DEFAULT_LANGUAGE = Language.ENGLISH

Text = Union[str, Callable[..., str]]
Table = Dict[str, Any]

# Only Cantonese needs an explicit voice; English uses the carrier default.
SAY_OPTIONS: Dict[str, Dict[str, str]] = {
    "en-US": {},
    "zh-HK": {"voice": "alice", "language": "zh-HK"},
}


def select_text(table: Table, language: Language) -> Any:
    """Pick the entry of ``table`` for ``language``."""
    return table[language.locale]


def say_options(language: Language) -> Dict[str, str]:
    """Voice metadata to attach to speech in ``language``."""
    return dict(select_text(SAY_OPTIONS, language))


def speak(sink, language: Language, text: str):
    """Speak ``text`` on ``sink`` (a Dialog or Gather) with the language's voice."""
    return sink.say(text, **say_options(language))


# Landing

GREETINGS = {
    "night": {"en-US": "Greetings.", "zh-HK": "你好."},
    "morning": {"en-US": "Good morning.", "zh-HK": "早晨."},
    "afternoon": {"en-US": "Good afternoon.", "zh-HK": "午安."},
    "evening": {"en-US": "Good evening.", "zh-HK": "晩安."},
}

WELCOME = {
    "en-US": lambda bank: f"Welcome to {bank}.",
    "zh-HK": lambda bank: f"歡迎使用{bank}.",
}


def greeting_period(hour: int) -> str:
    """Map an hour of the day (0-23) to a greeting period."""
    if hour < 6:
        return "night"
    if hour < 12:
        return "morning"
    if hour < 19:
        return "afternoon"
    return "evening"


# Language selection

CHOOSE_LANGUAGE = {
    "en-US": "For English, press 1.",
    "zh-HK": "廣東話, 請按二字.",
}

SELECT_LANGUAGE_AGAIN = {
    "en-US": "Please select a language.",
    "zh-HK": "請選擇語言.",
}

# Menus

MENU_SAY = {
    "en-US": lambda action, digit: f"{action}, press {digit}.",
    "zh-HK": lambda action, digit: f"{action}, 按{digit}字.",
}

INVALID_INPUT = {
    "en-US": "Invalid input, please try again.",
    "zh-HK": "輸入錯誤, 請重新輸入.",
}

MENU_HEADER = {
    "en-US": "Please select a service:",
    "zh-HK": "請選擇服務:",
}

MAIN_MENU_ITEMS = [
    {"en-US": "To enquiry account balance", "zh-HK": "查詢戶口結餘"},
    {"en-US": "For fund transfer", "zh-HK": "轉帳服務"},
    {"en-US": "To change language preference", "zh-HK": "選擇語言"},
    {
        "en-US": "To contact our Customer Service representative",
        "zh-HK": "聯絡我們的客戶服務主任",
    },
]

# Authentication

PROMPT_ACCOUNT_ID = {
    "en-US": "Please enter the 13 digits account ID. To cancel, press star.",
    "zh-HK": "請輸入十三位數字的戶口編號, 取消輸入, 按星字.",
}

PROMPT_PIN = {
    "en-US": "Please enter the 6 digits PIN number. To cancel, press star.",
    "zh-HK": "請輸入六位數字的戶口密碼, 取消輸入, 按星字.",
}

AUTH_ERRORS = {
    "system_err": {
        "en-US": "Sorry, there is a system error.",
        "zh-HK": "對不起, 系統錯誤.",
    },
    "incorrect": {
        "en-US": "Incorrect. Please try again.",
        "zh-HK": "輸入錯誤, 請重新輸入.",
    },
    "account_not_found": {
        "en-US": "The account you have entered does not exist.",
        "zh-HK": "你所輸入的戶口號碼並不存在.",
    },
    "pwd_incorrect_retry": {
        "en-US": "The PIN you have entered is incorrect, please try again.",
        "zh-HK": "你所輸入的密碼並不正確, 請重新輸入.",
    },
    "pwd_incorrect_stop": {
        "en-US": "Sorry, the PIN you have entered is incorrect. Goodbye.",
        "zh-HK": "對不起, 你所輸入的密碼並不正確. 再見.",
    },
}

# Balance enquiry

BALANCE_ANSWER = {
    "en-US": lambda balance: f"Your account balance is ${balance:,.2f}.",
    "zh-HK": lambda balance: f"你的戶口結餘為: ${balance:,.2f}.",
}

ENQUIRY_FOLLOWUP_ITEMS = [
    {"en-US": "To enquiry another account", "zh-HK": "查詢其它戶口", "key": "1"},
    {
        "en-US": "To transfer fund from this account",
        "zh-HK": "由本戶口進行轉賬",
        "key": "2",
    },
    {"en-US": "To go back to main menu", "zh-HK": "返回主目錄", "key": "0"},
]

# Fund transfer

ABORT_OPERATION = {
    "en-US": "To abort operation and go back to the main menu",
    "zh-HK": "取消操作並返回主目錄",
    "key": "0",
}

LAST_STEP = {
    "en-US": "To go back to the last step",
    "zh-HK": "返回上一步",
    "key": "9",
}

SELECT_TRANSFER_TYPE_ITEMS = [
    {
        "en-US": "To transfer fund to your own accounts",
        "zh-HK": "轉賬至同名戶口",
        "key": "1",
    },
    {
        "en-US": "To transfer fund to pre-registered accounts in this bank",
        "zh-HK": "轉賬至本行登記賬戶",
        "key": "2",
    },
    ABORT_OPERATION,
]

NO_ACCOUNT = {
    "en-US": "Sorry, no accounts available.",
    "zh-HK": "對不起, 找不到可供轉賬的戶口.",
}

CHOOSE_ACCOUNT_PROMPT = {
    "en-US": "Select an account below:",
    "zh-HK": "請選擇戶口編號:",
}

TRANSFER_TARGET_SELECTED = {
    "en-US": lambda account_id: f"You have selected account {account_id}.",
    "zh-HK": lambda account_id: f"你已選擇戶口 {account_id}.",
}

# Customer service

ENQUEUE_PROMPT = {
    "en-US": "Please hold, we are connecting you to our Customer Service representative.",
    "zh-HK": "請稍候, 我們正為你接駁客戶服務主任.",
}

HOLD_PROMPT = {
    "en-US": "All our representatives are busy. Please stay on the line.",
    "zh-HK": "客戶服務主任正忙, 請勿掛線.",
}

EXPLAIN_CANT_CONTACT = {
    "timeout": {
        "en-US": "Sorry, all our representatives are still busy. Please call again later.",
        "zh-HK": "對不起, 客戶服務主任仍然繁忙, 請稍後再致電.",
    },
    "not_in_service": {
        "en-US": "Sorry, our Customer Service hotline is currently closed.",
        "zh-HK": "對不起, 客戶服務熱線現已暫停服務.",
    },
}
