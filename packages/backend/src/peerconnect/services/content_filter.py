"""Keyword-based moderation for chat messages.

Learn: deliberately simple: a message is lower-cased and scanned for a
fixed vocabulary. Scam vocabulary is treated as the most severe signal
(the message is blocked outright); otherwise severity grows with the
number of distinct harmful keywords found.
"""

import re
from dataclasses import dataclass, field

HARMFUL_KEYWORDS = (
    "hate",
    "violence",
    "harassment",
    "bullying",
    "suicide",
    "self-harm",
    "drugs",
    "illegal",
    "scam",
    "spam",
    "inappropriate",
)

SCAM_KEYWORDS = ("scam", "fraud", "illegal", "counterfeit", "money-laundering")

# Actions, from mildest to harshest
NONE = "NONE"
WARN = "WARN"
MUTE = "MUTE"
LISTENER_RESPONSE = "LISTENER_RESPONSE"
BAN = "BAN"


@dataclass
class FilterResult:
    is_flagged: bool
    severity: str  # LOW | MEDIUM | HIGH
    action: str
    confidence: float
    flags: list[str] = field(default_factory=list)


def _contains(text: str, keyword: str) -> bool:
    return re.search(rf"(?<![\w-]){re.escape(keyword)}(?![\w-])", text) is not None


def filter_content(content: str, kind: str = "message") -> FilterResult:
    """Classify a piece of user content. `kind` is only used for flag labels."""
    text = content.lower()
    flags = [f"{kind}:{kw}" for kw in HARMFUL_KEYWORDS if _contains(text, kw)]
    scam_hits = [kw for kw in SCAM_KEYWORDS if _contains(text, kw)]

    if scam_hits:
        flags.extend(f"{kind}:scam:{kw}" for kw in scam_hits)
        severity, action = "HIGH", BAN
    elif len(flags) >= 3:
        severity, action = "HIGH", LISTENER_RESPONSE
    elif len(flags) == 2:
        severity, action = "MEDIUM", MUTE
    elif len(flags) == 1:
        severity, action = "LOW", WARN
    else:
        severity, action = "LOW", NONE

    flagged = bool(flags)
    return FilterResult(
        is_flagged=flagged,
        severity=severity,
        action=action,
        confidence=0.8 if flagged else 0.95,
        flags=flags,
    )
