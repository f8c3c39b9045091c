"""Keyword rule tables used by the detector and the dialog engine.

Every classification decision in the bot is driven by one of these tables so
the ordering can be inspected (and tested) in one place. Patterns are matched
against lower-cased text.
"""
from __future__ import annotations

import re
from typing import NamedTuple

from jirani.models import IncidentType


def _words(*terms: str) -> re.Pattern[str]:
    """Compile *terms* into a single word-bounded alternation."""
    alternation = "|".join(re.escape(t) for t in terms)
    return re.compile(rf"\b(?:{alternation})\b")


class TypeRule(NamedTuple):
    incident_type: IncidentType
    pattern: re.Pattern[str]


# ── Incident type (first match wins, weapons MUST stay first) ─────────

TYPE_RULES: tuple[TypeRule, ...] = (
    TypeRule(
        IncidentType.ARMED_ROBBERY,
        _words(
            "knife", "knifepoint", "gun", "gunpoint", "pistol", "rifle",
            "firearm", "panga", "machete", "weapon", "armed", "stabbed", "shot",
        ),
    ),
    TypeRule(
        IncidentType.THEFT,
        _words(
            "stole", "stolen", "steal", "stealing", "theft", "thief", "thieves",
            "robbed", "robbery", "rob", "pickpocket", "pickpocketed", "snatched",
            "grabbed", "burglary", "burgled", "broke into", "break-in",
        ),
    ),
    TypeRule(
        IncidentType.ASSAULT,
        _words(
            "mugged", "attacked", "attack", "assault", "assaulted", "beaten",
            "beat me", "hit me", "punched", "kicked", "slapped",
        ),
    ),
    TypeRule(
        IncidentType.THREAT,
        _words(
            "threat", "threats", "threatened", "threatening", "harass",
            "harassed", "harassment", "harassing", "stalking", "stalked",
            "intimidated", "intimidation",
        ),
    ),
)

DEFAULT_TYPE = IncidentType.GENERAL

SEVERITY_BY_TYPE: dict[IncidentType, int] = {
    IncidentType.ARMED_ROBBERY: 5,
    IncidentType.ASSAULT: 4,
}
DEFAULT_SEVERITY = 3


# ── Detection gate ────────────────────────────────────────────────────

# Any type rule keyword counts as a crime keyword.
CRIME_PATTERNS: tuple[re.Pattern[str], ...] = tuple(r.pattern for r in TYPE_RULES)

INCIDENT_PHRASES: re.Pattern[str] = _words(
    "want to report",
    "like to report",
    "report a crime",
    "report something",
    "happened to me",
    "was robbed",
    "got robbed",
    "someone took",
    "carjacked",
    "hijacked",
)

INCIDENT_LITERAL = "incident"


# ── Reporter intent while a draft awaits confirmation ─────────────────

AFFIRMATIVE: re.Pattern[str] = _words(
    "yes", "yeah", "yep", "confirm", "confirmed", "okay", "ok", "sure",
    "do it", "file it", "proceed", "ndio", "ndiyo", "sawa",
)
CANCELLATION: re.Pattern[str] = _words(
    "no", "nope", "cancel", "don't", "dont", "do not", "stop", "hapana",
)
# Hedges and negations cancel an affirmative ("not sure", "not ok yet").
HEDGES: re.Pattern[str] = _words(
    "not", "never", "isn't", "wasn't", "unsure", "maybe", "later", "wait",
    "sio", "sijui",
)
# Single letters only count when they are the whole reply.
AFFIRMATIVE_EXACT = frozenset({"y"})
CANCELLATION_EXACT = frozenset({"n"})


# ── Assistant reply asking for a filing decision ──────────────────────

_FILING_VERB = r"(?:file|filing|log|record|report|submit|save)\b"

# Each pattern needs a filing verb in the same sentence, so detail questions
# ("can you confirm where it happened?") never arm confirmation.
SOLICITATION_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(
        r"\b(?:would you like|do you want|shall|should|can|may)\s+"
        r"(?:me to|i|we)\s+(?:go ahead and\s+)?" + _FILING_VERB
    ),
    re.compile(r"\bconfirm\b[^.!?]*\b" + _FILING_VERB + r"[^.!]*\?"),
    re.compile(r"\breply\s+['\"*]?(?:yes|ndio)\b[^.!?]*\b" + _FILING_VERB),
    re.compile(
        r"\bis (?:this|that) (?:correct|right|accurate)\b[^.!?]*\b"
        + _FILING_VERB + r"[^.!]*\?"
    ),
)


def _normalize(text: str) -> str:
    return " ".join(text.lower().replace("’", "'").split())


def classify_type(text: str) -> IncidentType:
    lowered = _normalize(text)
    for rule in TYPE_RULES:
        if rule.pattern.search(lowered):
            return rule.incident_type
    return DEFAULT_TYPE


def severity_for(incident_type: IncidentType) -> int:
    return SEVERITY_BY_TYPE.get(incident_type, DEFAULT_SEVERITY)


def looks_like_incident(text: str) -> bool:
    lowered = _normalize(text)
    if INCIDENT_LITERAL in lowered:
        return True
    if INCIDENT_PHRASES.search(lowered):
        return True
    return any(p.search(lowered) for p in CRIME_PATTERNS)


def confirmation_intent(text: str) -> str | None:
    """Return ``"confirm"``, ``"cancel"`` or None.

    A reply that hits both tables ("yes, no wait...") or hedges an
    affirmative ("I'm not sure yet") is ambiguous and returns None, so the
    turn falls through and the draft stays pending.
    """
    lowered = _normalize(text)
    bare = lowered.strip(" .!?,;")
    if bare in AFFIRMATIVE_EXACT:
        return "confirm"
    if bare in CANCELLATION_EXACT:
        return "cancel"

    yes = bool(AFFIRMATIVE.search(lowered))
    no = bool(CANCELLATION.search(lowered))
    if yes and HEDGES.search(lowered):
        return None
    if yes and not no:
        return "confirm"
    if no and not yes:
        return "cancel"
    return None


def solicits_confirmation(reply: str) -> bool:
    lowered = _normalize(reply)
    return any(p.search(lowered) for p in SOLICITATION_PATTERNS)
