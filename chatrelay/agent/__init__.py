"""Relay core: classification, access control, commands and chat turns."""

from chatrelay.agent.access import AccessController, AccessPolicy
from chatrelay.agent.classifier import Command, PlainText, classify
from chatrelay.agent.commands import BotCommand, CommandDispatcher
from chatrelay.agent.loop import RelayLoop
from chatrelay.agent.streaming import EditThrottle, StreamingReply
from chatrelay.agent.turn import ChatTurnRunner

__all__ = [
    "RelayLoop",
    "AccessPolicy",
    "AccessController",
    "BotCommand",
    "CommandDispatcher",
    "ChatTurnRunner",
    "EditThrottle",
    "StreamingReply",
    "Command",
    "PlainText",
    "classify",
]
