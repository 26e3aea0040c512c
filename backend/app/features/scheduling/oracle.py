"""
Scheduling feature: optional slot-ranking oracle and time suggestion.

The deterministic engine produces chronological candidates; a `SlotRanker`
may reorder them. Any ranker failure (error, timeout, bad output) falls back
to the chronological order, tagged "rule-based".
"""

import asyncio
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Literal, Protocol

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from pydantic import BaseModel, Field

from app.core.timeutils import utc_now
from app.features.scheduling.patterns import SchedulingPatterns, analyze_scheduling_patterns
from app.features.scheduling.slots import TimeSlot, WorkingHours, find_available_slots

logger = logging.getLogger(__name__)

MAX_RANKED_SLOTS = 10  # token budget for the ranking prompt
MAX_CONTEXT_CHARS = 500

SYSTEM_PROMPT = (
    "You are an expert in calendar optimization, time management, and productivity science. "
    "Rank every candidate slot, best first."
)


class SlotRanking(BaseModel):
    slot_index: int = Field(description="1-based index of the slot in the candidate list")
    score: float = Field(0.5, description="Fit from 0 (poor) to 1 (ideal)")
    reason: str = Field("", description="One short sentence explaining the score")


class SlotRankings(BaseModel):
    rankings: list[SlotRanking] = Field(description="Every candidate slot, best first")


class RankedSlot(BaseModel):
    slot: TimeSlot
    reason: str
    score: float | None = None


class SlotSuggestion(BaseModel):
    start: datetime
    end: datetime
    day: str | None = None
    time: str | None = None
    reasoning: str
    confidence: float
    alternatives: list[RankedSlot] = []
    source: Literal["rule-based", "ai-ranked"] = "rule-based"


class SlotRanker(Protocol):
    """Strategy that orders candidate slots, best first. None = no opinion."""

    async def rank(
        self,
        slots: list[TimeSlot],
        patterns: SchedulingPatterns,
        context: str,
    ) -> list[SlotRanking] | None: ...


# ── Helpers ──────────────────────────────────────────────

def sanitize_context(text: str | None) -> str:
    """Strip control characters and prompt-breaking quotes, cap the length."""
    if not text:
        return ""
    cleaned = re.sub(r"[\x00-\x1f\x7f]", " ", str(text))
    cleaned = cleaned.replace('"', "'").replace("`", "'")
    return re.sub(r"\s+", " ", cleaned).strip()[:MAX_CONTEXT_CHARS]


def build_ranking_prompt(slots: list[TimeSlot], patterns: SchedulingPatterns, context: str) -> str:
    duration = int((slots[0].end - slots[0].start).total_seconds() // 60) if slots else 0
    slot_lines = "\n".join(f"{i}. {slot.label}" for i, slot in enumerate(slots, 1))
    peak_hours = ", ".join(f"{h}:00" for h in patterns.peak_hours)

    return f"""Analyze and rank these available time slots.

User's Scheduling Patterns:
- Preferred meeting times: {", ".join(patterns.preferred_times)}
- Average meeting duration: {patterns.avg_duration_minutes} minutes
- Most productive hours: {peak_hours}
- Weekly meeting load: {patterns.weekly_event_count} events

Available Time Slots:
{slot_lines}

Meeting Context: "{sanitize_context(context) or 'General meeting/event'}"
Required Duration: {duration} minutes

Ranking Criteria:
1. User's historical preferences (40% weight)
2. Circadian productivity (30% weight) - prefer 9-11 AM or 2-4 PM
3. Meeting spacing (20% weight) - avoid back-to-back
4. Context appropriateness (10% weight)

Rank ALL {len(slots)} slots from best to worst, scoring each from 0 to 1 with a short reason."""


class LLMSlotRanker:
    """SlotRanker backed by the configured chat model."""

    def __init__(self, llm: BaseChatModel | None = None):
        self._llm = llm

    @property
    def llm(self) -> BaseChatModel:
        if self._llm is None:
            from app.core.llm_provider import create_llm

            self._llm = create_llm()
        return self._llm

    async def rank(
        self,
        slots: list[TimeSlot],
        patterns: SchedulingPatterns,
        context: str,
    ) -> list[SlotRanking] | None:
        prompt = build_ranking_prompt(slots[:MAX_RANKED_SLOTS], patterns, context)
        structured_llm = self.llm.with_structured_output(SlotRankings)
        result = await structured_llm.ainvoke([
            SystemMessage(content=SYSTEM_PROMPT),
            HumanMessage(content=prompt),
        ])
        return result.rankings if result is not None else None


# ── Suggestion ───────────────────────────────────────────

def _rule_based(slots: list[TimeSlot], reasoning: str) -> SlotSuggestion:
    best = slots[0]
    return SlotSuggestion(
        start=best.start,
        end=best.end,
        day=best.day,
        time=best.time,
        reasoning=reasoning,
        confidence=0.7,
        alternatives=[RankedSlot(slot=s, reason="Alternative available time") for s in slots[1:3]],
        source="rule-based",
    )


def _apply_rankings(slots: list[TimeSlot], rankings: list[SlotRanking]) -> SlotSuggestion | None:
    valid = [r for r in rankings if 1 <= r.slot_index <= min(len(slots), MAX_RANKED_SLOTS)]
    if not valid:
        return None

    best = valid[0]
    slot = slots[best.slot_index - 1]
    return SlotSuggestion(
        start=slot.start,
        end=slot.end,
        day=slot.day,
        time=slot.time,
        reasoning=best.reason or "Ranked best by scheduling assistant",
        confidence=max(0.0, min(best.score, 1.0)),
        alternatives=[
            RankedSlot(slot=slots[r.slot_index - 1], reason=r.reason, score=r.score)
            for r in valid[1:3]
        ],
        source="ai-ranked",
    )


async def suggest_time_slot(
    events: Iterable,
    duration_minutes: int,
    context: str = "",
    ranker: SlotRanker | None = None,
    timeout: float | None = None,
    working_hours: WorkingHours | Mapping | None = None,
    horizon_days: int = 7,
    step_minutes: int = 30,
    now: datetime | None = None,
) -> SlotSuggestion:
    """Pick the best slot for a new event, consulting `ranker` when given."""
    events = list(events or [])
    now = now or utc_now()
    patterns = analyze_scheduling_patterns(events)
    slots = find_available_slots(
        events,
        duration_minutes,
        horizon_days=horizon_days,
        working_hours=working_hours,
        step_minutes=step_minutes,
        now=now,
    )

    if not slots:
        return SlotSuggestion(
            start=now,
            end=now + timedelta(minutes=max(duration_minutes or 0, 0)),
            reasoning=f"No available slots found in next {horizon_days} days",
            confidence=0.3,
        )

    if ranker is None:
        return _rule_based(slots, "First available slot")

    try:
        rankings = await asyncio.wait_for(ranker.rank(slots, patterns, context), timeout=timeout)
    except Exception as e:
        logger.warning(f"Slot ranking failed, using chronological order: {e!r}")
        return _rule_based(slots, "First available slot (AI ranking unavailable)")

    suggestion = _apply_rankings(slots, rankings or [])
    if suggestion is None:
        logger.warning("Slot ranking returned no usable entries, using chronological order")
        return _rule_based(slots, "First available slot (AI ranking unavailable)")
    return suggestion
