"""
Priority service - scores a conversation 0-100 from its latest message.

Five signals are computed, normalized to 0-100, weighted and summed:

    contact_priority      40%   contact's base priority (already 0-100)
    urgency_keywords      20%   strongest urgency keyword in the content (0-20)
    recency               20%   step function on hours since the message (0-20)
    response_expectation  15%   platform reply-latency norm (0-15)
    provider_boost         5%   channel-specific metadata flags (-10..+10)

Conversations inactive for INACTIVITY_THRESHOLD_DAYS or more score 0.
All functions take an optional `now` so results are reproducible.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime, timedelta

from app.config import settings
from app.models.domain.inbox_domain import PriorityContext, PrioritySignals
from app.services.channel_strategies import get_strategy

WEIGHTS = {
    "contact_priority": 0.40,
    "urgency_keywords": 0.20,
    "recency": 0.20,
    "response_expectation": 0.15,
    "provider_boost": 0.05,
}

URGENCY_KEYWORDS: dict[str, int] = {
    # High urgency
    "urgent": 20,
    "asap": 20,
    "emergency": 20,
    "critical": 18,
    "immediately": 18,
    "deadline": 15,
    # Medium urgency
    "important": 10,
    "time-sensitive": 10,
    "priority": 8,
    "needed": 7,
    "soon": 6,
    # Low urgency
    "quick question": 5,
    "when you can": 3,
    "no rush": 0,
}

MAX_URGENCY = 20
MAX_RECENCY = 20
MAX_RESPONSE_EXPECTATION = 15
PROVIDER_BOOST_LIMIT = 10

# (hours_exclusive_upper_bound, score), checked in order
RECENCY_STEPS: tuple[tuple[float, int], ...] = (
    (1, 20),
    (4, 15),
    (24, 10),
    (72, 5),
)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(UTC)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def is_inactive(last_message_at: datetime, now: datetime | None = None) -> bool:
    """True when no message arrived within the inactivity threshold."""
    threshold = timedelta(days=settings.INACTIVITY_THRESHOLD_DAYS)
    return _now(now) - _as_utc(last_message_at) >= threshold


def urgency_score(content: str) -> int:
    """Highest matching keyword score (case-insensitive substring). Matches do not stack."""
    lowered = (content or "").lower()
    best = 0
    for keyword, score in URGENCY_KEYWORDS.items():
        if keyword in lowered:
            best = max(best, score)
    return min(best, MAX_URGENCY)


def recency_score(last_message_at: datetime, now: datetime | None = None) -> int:
    hours_since = (_now(now) - _as_utc(last_message_at)).total_seconds() / 3600
    for upper_bound, score in RECENCY_STEPS:
        if hours_since < upper_bound:
            return score
    return 0


def provider_boost(channel: str, metadata: dict | None) -> int:
    """Channel boost from metadata flags; the combined value is clamped to +/-10."""
    raw = get_strategy(channel).provider_boost(metadata or {})
    return max(-PROVIDER_BOOST_LIMIT, min(PROVIDER_BOOST_LIMIT, raw))


def calculate_priority_signals(
    context: PriorityContext, now: datetime | None = None
) -> PrioritySignals:
    """Raw signal values, useful for debugging a score."""
    return PrioritySignals(
        contact_priority=context.contact_priority,
        urgency_keywords=urgency_score(context.content),
        recency=recency_score(context.last_message_at, now),
        response_expectation=get_strategy(context.channel).response_expectation,
        provider_boost=provider_boost(context.channel, context.metadata),
    )


def normalize_signals(signals: PrioritySignals) -> dict[str, float]:
    return {
        "contact_priority": float(signals.contact_priority),
        "urgency_keywords": signals.urgency_keywords / MAX_URGENCY * 100,
        "recency": signals.recency / MAX_RECENCY * 100,
        "response_expectation": signals.response_expectation / MAX_RESPONSE_EXPECTATION * 100,
        "provider_boost": (
            (signals.provider_boost + PROVIDER_BOOST_LIMIT) / (2 * PROVIDER_BOOST_LIMIT) * 100
        ),
    }


def calculate_priority(context: PriorityContext, now: datetime | None = None) -> int:
    """
    Calculate the final 0-100 priority for a conversation.

    Args:
        context: Channel, content, timestamp, contact priority and metadata
        now: Reference time (defaults to current UTC time)

    Returns:
        Integer priority in [0, 100]; 0 for inactive conversations
    """
    now = _now(now)
    if is_inactive(context.last_message_at, now):
        return 0

    normalized = normalize_signals(calculate_priority_signals(context, now))
    weighted_sum = sum(WEIGHTS[key] * normalized[key] for key in WEIGHTS)

    # Half-up rounding, not banker's rounding.
    return max(0, min(100, math.floor(weighted_sum + 0.5)))


def priority_with_inactivity_check(
    stored_priority: int, last_message_at: datetime, now: datetime | None = None
) -> int:
    """Read-time check: stale conversations report 0 without a recompute pass."""
    if is_inactive(last_message_at, now):
        return 0
    return stored_priority
