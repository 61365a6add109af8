"""Keypad input validation."""
import re

ACCOUNT_ID_DIGITS = 13
PIN_DIGITS = 6

_DIGITS = re.compile(r"[0-9]+")


def validate_numeric(value: str, num_digits: int) -> bool:
    """Check that ``value`` is exactly ``num_digits`` ASCII digits."""
    return len(value) == num_digits and _DIGITS.fullmatch(value) is not None


def format_account_id(digits: str) -> str:
    """Format 13 account digits as the directory's NNN-NNNNNNN-N."""
    if not validate_numeric(digits, ACCOUNT_ID_DIGITS):
        raise ValueError(f"Account id must be {ACCOUNT_ID_DIGITS} digits")
    return f"{digits[:3]}-{digits[3:10]}-{digits[10:]}"
