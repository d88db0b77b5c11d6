"""Classify inbound events into plain text or bot commands."""

from dataclasses import dataclass

from chatrelay.bus.events import InboundEvent


@dataclass(frozen=True)
class PlainText:
    """A message to be relayed to the backend as-is."""

    body: str


@dataclass(frozen=True)
class Command:
    """A leading bot command, e.g. ``/reset@my_bot some text``."""

    name: str  # "/reset", mention removed
    mention_present: bool
    body: str = ""


ClassifiedIntent = PlainText | Command


def classify(event: InboundEvent, bot_username: str) -> ClassifiedIntent:
    """
    Classify an event by its leading command entity.

    Only a command starting at offset 0 counts; later command-like tokens stay
    in the body untouched. A trailing ``@<bot_username>`` on the command marks
    it as addressed to this bot and is stripped from the name.
    """
    text = event.text or ""
    span = next((s for s in event.command_spans if s.offset == 0), None)
    if span is None or span.length <= 0:
        return PlainText(body=text)

    token = text[: span.length]
    body = text[span.length :].strip()
    suffix = f"@{bot_username}" if bot_username else ""
    mention_present = bool(suffix) and token.endswith(suffix) and len(token) > len(suffix)
    name = token[: -len(suffix)] if mention_present else token
    return Command(name=name, mention_present=mention_present, body=body)
