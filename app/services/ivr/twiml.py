"""Render dialogs as TwiML."""
from twilio.twiml.voice_response import Dial as TwimlDial
from twilio.twiml.voice_response import Gather as TwimlGather
from twilio.twiml.voice_response import VoiceResponse

from app.services.ivr.dialog import (
    Dial,
    Dialog,
    Enqueue,
    Gather,
    Hangup,
    Leave,
    Pause,
    Play,
    Redirect,
    Say,
)


def _say(node, step: Say) -> None:
    options = {}
    if step.voice:
        options["voice"] = step.voice
    if step.language:
        options["language"] = step.language
    node.say(step.text, **options)


def render_twiml(dialog: Dialog) -> str:
    """Build the TwiML document for ``dialog``."""
    response = VoiceResponse()
    for step in dialog.steps:
        if isinstance(step, Say):
            _say(response, step)
        elif isinstance(step, Pause):
            response.pause(length=step.length)
        elif isinstance(step, Play):
            response.play(step.url, loop=step.loop)
        elif isinstance(step, Gather):
            gather = TwimlGather(
                num_digits=step.num_digits,
                action=step.action,
                method="POST",
                **({"finish_on_key": step.finish_on_key} if step.finish_on_key else {}),
            )
            for prompt in step.prompts:
                if isinstance(prompt, Say):
                    _say(gather, prompt)
                else:
                    gather.pause(length=prompt.length)
            response.append(gather)
        elif isinstance(step, Redirect):
            response.redirect(step.url, method="POST")
        elif isinstance(step, Hangup):
            response.hangup()
        elif isinstance(step, Enqueue):
            response.enqueue(step.queue, wait_url=step.wait_url, wait_url_method="POST")
        elif isinstance(step, Leave):
            response.leave()
        elif isinstance(step, Dial):
            dial = TwimlDial()
            dial.sip(step.sip)
            response.append(dial)
        else:
            raise TypeError(f"Unsupported dialog step: {step!r}")
    return str(response)
