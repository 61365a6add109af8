"""Twilio voice webhook endpoints, one per dialog screen."""
import logging
from typing import Awaitable, Optional
from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import Response

from app.core.dependencies import get_call_flow
from app.core.security import verify_twilio_signature
from app.services.ivr.call_flow import CallFlow, Turn
from app.services.ivr.dialog import Dialog
from app.services.ivr.stages import Purpose, VoiceMailReason
from app.services.ivr.twiml import render_twiml

router = APIRouter(dependencies=[Depends(verify_twilio_signature)])
logger = logging.getLogger(__name__)


def get_turn(
    CallSid: str = Form(...),
    Digits: Optional[str] = Form(None),
    LangPref: Optional[str] = Form(None),
) -> Turn:
    """Read the carrier's form fields for this turn."""
    return Turn(call_sid=CallSid, digits=Digits or None, lang_pref=LangPref or None)


async def _answer(
    request: Request, turn: Turn, flow: CallFlow, step: Awaitable[Dialog]
) -> Response:
    """Run a call flow step and render its dialog as TwiML."""
    logger.info(
        f"[VOICE WEBHOOK] {request.url.path} - CallSid: {turn.call_sid}, "
        f"Digits: {'yes' if turn.digits else 'none'}"
    )
    try:
        dialog = await step
    except Exception as e:
        logger.error(
            f"[VOICE WEBHOOK] Error handling {request.url.path} - CallSid: {turn.call_sid}, "
            f"Error: {type(e).__name__}: {str(e)}",
            exc_info=True,
        )
        # Return a graceful error response to Twilio
        dialog = await flow.system_error(turn)
    return Response(content=render_twiml(dialog), media_type="application/xml")


@router.post("/landing")
async def landing(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    """Entry point configured as the phone number's voice webhook."""
    return await _answer(request, turn, flow, flow.landing(turn))


@router.post("/choose_lang")
async def choose_language(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.choose_language(turn))


@router.post("/menu")
async def main_menu(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.main_menu(turn))


@router.post("/prompt_accid/{purpose}")
async def prompt_account_id(
    purpose: Purpose,
    request: Request,
    turn: Turn = Depends(get_turn),
    flow: CallFlow = Depends(get_call_flow),
):
    return await _answer(request, turn, flow, flow.prompt_account_id(turn, purpose))


@router.post("/prompt_accid/check/{purpose}")
async def check_account_id(
    purpose: Purpose,
    request: Request,
    turn: Turn = Depends(get_turn),
    flow: CallFlow = Depends(get_call_flow),
):
    return await _answer(request, turn, flow, flow.check_account_id(turn, purpose))


@router.post("/prompt_pin/{purpose}")
async def prompt_pin(
    purpose: Purpose,
    request: Request,
    turn: Turn = Depends(get_turn),
    flow: CallFlow = Depends(get_call_flow),
):
    return await _answer(request, turn, flow, flow.prompt_pin(turn, purpose))


@router.post("/prompt_pin/check/{purpose}")
async def check_pin(
    purpose: Purpose,
    request: Request,
    turn: Turn = Depends(get_turn),
    flow: CallFlow = Depends(get_call_flow),
):
    return await _answer(request, turn, flow, flow.check_pin(turn, purpose))


@router.post("/enquiry_balance")
async def enquiry_balance(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.enquiry_balance(turn))


@router.post("/enquiry_balance/followup")
async def enquiry_followup(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.enquiry_followup(turn))


@router.post("/fund_transfer/select_type")
async def select_transfer_type(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.select_transfer_type(turn))


@router.post("/fund_transfer/select_account")
async def select_transfer_account(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.select_transfer_account(turn))


@router.post("/fund_transfer/choose_account")
async def choose_transfer_account(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.choose_transfer_account(turn))


@router.post("/contact_csr")
async def contact_agent(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.contact_agent(turn))


@router.post("/contact_csr/waiting")
async def waiting(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    """Wait URL of the agent queue."""
    return await _answer(request, turn, flow, flow.waiting(turn))


@router.post("/contact_csr/voice_mail/{reason}")
async def voice_mail(
    reason: VoiceMailReason,
    request: Request,
    turn: Turn = Depends(get_turn),
    flow: CallFlow = Depends(get_call_flow),
):
    return await _answer(request, turn, flow, flow.voice_mail(turn, reason))


@router.post("/contact_csr/connect")
async def connect_agent(
    request: Request, turn: Turn = Depends(get_turn), flow: CallFlow = Depends(get_call_flow)
):
    return await _answer(request, turn, flow, flow.connect_agent(turn))
