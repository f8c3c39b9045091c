"""Fixed replies, and canned replies for when the model is unavailable."""
from __future__ import annotations

import re
from typing import Callable, NamedTuple

from jirani.models import ConversationState

CONFIRMED_REPLY = (
    "✅ Asante! Your report has been filed. It will help keep the community "
    "safe, and you were brave to share it. If anything else happens, just "
    "message me here."
)

DECLINED_REPLY = (
    "No problem at all, I won't file anything. Is there anything else I can "
    "help you with today?"
)

AWAITING_REPLY = (
    "I'm waiting for your confirmation about the incident you reported. "
    "Please reply 'yes' to file it or 'no' to cancel."
)

RATE_LIMITED_REPLY = (
    "You're sending messages a bit fast. Please wait a minute and try again."
)

ERROR_REPLY = (
    "Sorry, something went wrong on my side and I could not save that. "
    "Please try again in a moment."
)

HELP_REPLY = (
    "Tell me what happened, where and roughly when, and I'll help you file a "
    "safety report.\n"
    "Commands:\n"
    "  /reset - start a fresh conversation\n"
    "  /help - show this message"
)

RESET_REPLY = "Conversation reset. Send a message whenever you're ready."


def _draft_reply(conv: ConversationState) -> str:
    draft = conv.active_draft
    if draft is None:
        return GENERIC_FALLBACK
    where = f" near {draft.location}" if draft.location else ""
    return (
        f"Pole sana, I'm sorry this happened. I've noted a "
        f"{draft.type.value.lower()}{where}. Would you like me to file this "
        "report? Reply yes or no."
    )


class FallbackRule(NamedTuple):
    name: str
    applies: Callable[[str, ConversationState], bool]
    reply: Callable[[ConversationState], str]


def _matches(*phrases: str) -> Callable[[str, ConversationState], bool]:
    pattern = re.compile(r"\b(?:" + "|".join(re.escape(p) for p in phrases) + r")\b")
    return lambda text, conv: bool(pattern.search(text))


def _const(text: str) -> Callable[[ConversationState], str]:
    return lambda conv: text


# First match wins.
FALLBACK_RULES: tuple[FallbackRule, ...] = (
    FallbackRule(
        "awaiting",
        lambda text, conv: conv.awaiting_confirmation and conv.active_draft is not None,
        _const(AWAITING_REPLY),
    ),
    FallbackRule(
        "draft",
        lambda text, conv: conv.active_draft is not None,
        _draft_reply,
    ),
    FallbackRule(
        "emergency",
        _matches("emergency", "danger", "help me", "urgent", "999", "112"),
        _const(
            "🚨 This sounds urgent! If you are in immediate danger please call "
            "999 or 112 right away. Once you're safe, I can help you report "
            "what happened."
        ),
    ),
    FallbackRule(
        "identity",
        _matches("who are you", "your name", "are you a bot", "are you human", "are you real"),
        _const(
            "I'm Jirani, a community safety assistant. I help people in Kenya "
            "report incidents and stay safe."
        ),
    ),
    FallbackRule(
        "origin",
        _matches("who made you", "who created you", "who built you", "where are you from"),
        _const(
            "I was set up by a community safety team here in Kenya. Is there "
            "something safety-related I can help you with?"
        ),
    ),
    FallbackRule(
        "capability",
        _matches("what can you do", "how can you help", "what do you do", "how does this work"),
        _const(
            "I help people report safety incidents like theft, robbery, "
            "assault or harassment, and I can share safety tips for your "
            "area. What would you like to do?"
        ),
    ),
    FallbackRule(
        "greeting",
        _matches("hi", "hello", "hey", "habari", "niaje", "mambo", "sasa", "hola", "good morning", "good evening"),
        _const(
            "Hello! 👋 I'm Jirani, your community safety assistant. How are "
            "you doing today?"
        ),
    ),
)

GENERIC_FALLBACK = (
    "Thanks for reaching out! I'm here to help with safety questions or if "
    "you need to report something. Tell me what's on your mind."
)


def fallback_reply(text: str, conv: ConversationState) -> str:
    """Pick a deterministic reply for *text* without the model."""
    lowered = " ".join((text or "").lower().split())
    for rule in FALLBACK_RULES:
        if rule.applies(lowered, conv):
            return rule.reply(conv)
    return GENERIC_FALLBACK

