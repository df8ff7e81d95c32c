"""
Prompt-injection scrubbing for chat input.

Matches are replaced with a redaction marker rather than rejected; the cleaned
text is capped at MAX_MESSAGE_LENGTH characters.
"""

import re
from typing import List, Pattern

REDACTION_MARKER = "[FILTERED]"
MAX_MESSAGE_LENGTH = 1000

INJECTION_PATTERNS: List[Pattern[str]] = [
    re.compile(r"ignore\s+previous\s+instructions", re.IGNORECASE),
    re.compile(r"disregard\s+all\s+prior", re.IGNORECASE),
    re.compile(r"forget\s+everything", re.IGNORECASE),
    re.compile(r"new\s+instructions:", re.IGNORECASE),
    re.compile(r"system\s+prompt:", re.IGNORECASE),
    re.compile(r"you\s+are\s+now", re.IGNORECASE),
]

# explicit requests that unlock the on-chain lookup tool for one turn
ONCHAIN_TRIGGERS: Pattern[str] = re.compile(
    r"check\s+on-?\s?chain"
    r"|search\s+(?:the\s+)?blockchain"
    r"|on-?\s?chain\s+(?:transactions?|history|activity)"
    r"|blockchain\s+(?:transactions?|history)"
    r"|controlla\s+on-?\s?chain"
    r"|cerca\s+(?:sulla|nella)\s+blockchain",
    re.IGNORECASE,
)


def contains_injection(text: str) -> bool:
    return any(p.search(text) for p in INJECTION_PATTERNS)


def sanitize_input(text: str) -> str:
    cleaned = text or ""
    # repeat until stable so a replacement can never splice a new match together
    while contains_injection(cleaned):
        for pattern in INJECTION_PATTERNS:
            cleaned = pattern.sub(REDACTION_MARKER, cleaned)
    return cleaned.strip()[:MAX_MESSAGE_LENGTH]


def wants_onchain_lookup(text: str) -> bool:
    return bool(ONCHAIN_TRIGGERS.search(text or ""))
