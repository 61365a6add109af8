"""Keypad menu dispatch and composition shared by every menu screen."""
import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence

from app.services.ivr.dialog import Dialog
from app.services.ivr.localization import (
    INVALID_INPUT,
    MENU_SAY,
    Language,
    select_text,
    speak,
)

logger = logging.getLogger(__name__)

Handler = Callable[[str, Dialog], Awaitable[None]]
InvalidHandler = Callable[[Dialog], None]


async def dispatch_menu(
    digits: Optional[str],
    dialog: Dialog,
    handlers: Mapping[str, Handler],
    on_invalid: InvalidHandler,
) -> bool:
    """Run the handler bound to the pressed digit.

    Returns True if a handler ran. False means the caller must render the
    menu prompt: either nothing was pressed yet (first visit) or the digit
    matched nothing, in which case ``on_invalid`` has already added its
    message to ``dialog``.
    """
    if not digits:
        return False
    handler = handlers.get(digits)
    if handler is None:
        logger.info(f"[MENU] No handler for digits '{digits}'")
        on_invalid(dialog)
        return False
    await handler(digits, dialog)
    return True


def jump(url: str) -> Handler:
    """Handler that redirects to ``url``."""

    async def _jump(digit: str, dialog: Dialog) -> None:
        dialog.redirect(url)

    return _jump


def please_enter_again(language: Language) -> InvalidHandler:
    """Invalid-input handler announcing the error in ``language``."""

    def _enter_again(dialog: Dialog) -> None:
        speak(dialog, language, select_text(INVALID_INPUT, language))
        dialog.pause(1)

    return _enter_again


def compose_menu(
    dialog: Dialog,
    target: str,
    header: Optional[Dict[str, Any]],
    items: Sequence[Dict[str, Any]],
    language: Language,
) -> None:
    """Speak a menu inside a one-digit gather posting to ``target``.

    Each item is a localized table, optionally with an explicit ``key``;
    items without one are numbered by 1-based position.
    """
    gather = dialog.gather(num_digits=1, action=target)
    if header:
        speak(gather, language, select_text(header, language))
    fmt = select_text(MENU_SAY, language)
    for position, item in enumerate(items, start=1):
        key = item.get("key", position)
        speak(gather, language, fmt(select_text(item, language), key))
