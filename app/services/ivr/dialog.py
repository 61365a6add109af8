"""Declarative dialog instructions produced by the call flow.

A ``Dialog`` is an ordered list of steps for the carrier to play. The call
flow only builds dialogs; ``app.services.ivr.twiml`` turns them into the
carrier's markup.
"""
from typing import List, Literal, Optional, Union
from pydantic import BaseModel


class Say(BaseModel):
    kind: Literal["say"] = "say"
    text: str
    voice: Optional[str] = None
    language: Optional[str] = None


class Pause(BaseModel):
    kind: Literal["pause"] = "pause"
    length: int = 1


class Play(BaseModel):
    kind: Literal["play"] = "play"
    url: str
    loop: int = 1


class Gather(BaseModel):
    """Collect DTMF digits, speaking the nested prompts meanwhile."""

    kind: Literal["gather"] = "gather"
    num_digits: int
    action: str
    finish_on_key: Optional[str] = None
    prompts: List[Union[Say, Pause]] = []

    def say(self, text: str, voice: Optional[str] = None, language: Optional[str] = None) -> Say:
        step = Say(text=text, voice=voice, language=language)
        self.prompts.append(step)
        return step

    def pause(self, length: int = 1) -> Pause:
        step = Pause(length=length)
        self.prompts.append(step)
        return step


class Redirect(BaseModel):
    kind: Literal["redirect"] = "redirect"
    url: str


class Hangup(BaseModel):
    kind: Literal["hangup"] = "hangup"


class Enqueue(BaseModel):
    kind: Literal["enqueue"] = "enqueue"
    queue: str
    wait_url: str


class Leave(BaseModel):
    kind: Literal["leave"] = "leave"


class Dial(BaseModel):
    kind: Literal["dial"] = "dial"
    sip: str


Step = Union[Say, Pause, Play, Gather, Redirect, Hangup, Enqueue, Leave, Dial]


class Dialog(BaseModel):
    """Ordered instructions answering one webhook turn."""

    steps: List[Step] = []

    def _add(self, step):
        self.steps.append(step)
        return step

    def say(self, text: str, voice: Optional[str] = None, language: Optional[str] = None) -> Say:
        return self._add(Say(text=text, voice=voice, language=language))

    def pause(self, length: int = 1) -> Pause:
        return self._add(Pause(length=length))

    def play(self, url: str, loop: int = 1) -> Play:
        return self._add(Play(url=url, loop=loop))

    def gather(
        self, num_digits: int, action: str, finish_on_key: Optional[str] = None
    ) -> Gather:
        return self._add(
            Gather(num_digits=num_digits, action=action, finish_on_key=finish_on_key)
        )

    def redirect(self, url: str) -> Redirect:
        return self._add(Redirect(url=url))

    def hangup(self) -> Hangup:
        return self._add(Hangup())

    def enqueue(self, queue: str, wait_url: str) -> Enqueue:
        return self._add(Enqueue(queue=queue, wait_url=wait_url))

    def leave(self) -> Leave:
        return self._add(Leave())

    def dial(self, sip: str) -> Dial:
        return self._add(Dial(sip=sip))

    # Inspection helpers

    @property
    def spoken(self) -> List[str]:
        """All spoken text in order, including prompts inside gathers."""
        texts = []
        for step in self.steps:
            if isinstance(step, Say):
                texts.append(step.text)
            elif isinstance(step, Gather):
                texts.extend(p.text for p in step.prompts if isinstance(p, Say))
        return texts

    @property
    def gathers(self) -> List[Gather]:
        return [s for s in self.steps if isinstance(s, Gather)]

    @property
    def redirect_url(self) -> Optional[str]:
        """Target of the last redirect, if any."""
        for step in reversed(self.steps):
            if isinstance(step, Redirect):
                return step.url
        return None

    @property
    def hangs_up(self) -> bool:
        return any(isinstance(s, Hangup) for s in self.steps)
