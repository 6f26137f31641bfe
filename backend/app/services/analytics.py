"""
Prompt & Pause Backend — Reflection Analytics
==============================================

What:  Pure functions over reflection data: streaks, mood distribution,
       mood trend, top tags, and the short mood-pattern reading used when
       personalizing AI prompts.
How:   Plain Python over dates and mood strings. No database access here;
       services fetch rows and pass the relevant columns in.
"""

from collections import Counter
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

# Mood emoji → score (1 = low, 5 = high)
MOOD_SCORES: Dict[str, int] = {
    "😔": 1,
    "😐": 2,
    "🤔": 3,
    "😊": 4,
    "😄": 5,
    "😌": 4,
    "🙏": 4,
    "💪": 5,
}

VALID_MOODS = frozenset(MOOD_SCORES)
NEUTRAL_MOOD = "😐"
DEFAULT_MOOD = "😊"

# Groupings used by analyze_mood_pattern
HAPPY_MOODS = ("😊", "😄", "😌", "🙏")
DIFFICULT_MOODS = ("😔", "🤔")
NEUTRAL_MOODS = ("😐",)

STREAK_LOOKBACK_DAYS = 365
TREND_THRESHOLD = 0.2


def validate_mood(mood: Optional[str]) -> str:
    """Return the mood if it is supported, otherwise the neutral mood."""
    if mood and mood in VALID_MOODS:
        return mood
    return NEUTRAL_MOOD


def mood_score(mood: str) -> int:
    return MOOD_SCORES.get(mood, 3)


# ══════════════════════════════════════════════════════════════════════════
# Streaks
# ══════════════════════════════════════════════════════════════════════════

def calculate_current_streak(entry_dates: Iterable[date], today: date) -> int:
    """
    Count consecutive days with at least one reflection, walking back from today.

    Today may still be empty (the user has not written yet), so a missing
    entry only ends the streak from yesterday backwards.
    """
    days = set(entry_dates)
    if not days:
        return 0

    streak = 0
    for i in range(STREAK_LOOKBACK_DAYS):
        check = today - timedelta(days=i)
        if check in days:
            streak += 1
        elif i > 0:
            break
    return streak


def calculate_longest_streak(entry_dates: Iterable[date]) -> int:
    days = sorted(set(entry_dates))
    if not days:
        return 0

    longest = current = 1
    for prev, cur in zip(days, days[1:]):
        if cur - prev == timedelta(days=1):
            current += 1
            longest = max(longest, current)
        else:
            current = 1
    return longest


# ══════════════════════════════════════════════════════════════════════════
# Moods
# ══════════════════════════════════════════════════════════════════════════

def mood_distribution(moods: Iterable[Optional[str]], with_percentage: bool = True) -> List[dict]:
    """
    Count validated moods, most frequent first.

    Empty moods are skipped; unknown moods are counted as neutral.
    """
    counts = Counter(validate_mood(m) for m in moods if m)
    total = sum(counts.values())
    result = []
    for mood, count in counts.most_common():
        item = {"mood": mood, "count": count}
        if with_percentage:
            item["percentage"] = round(count / total * 100) if total else 0
        result.append(item)
    return result


def _average(entries: Sequence[Tuple[date, str]]) -> float:
    return sum(mood_score(m) for _, m in entries) / len(entries)


def calculate_mood_trend(entries: Sequence[Tuple[date, str]]) -> str:
    """
    Classify the direction of mood over a period of (date, mood) entries.

    Entries must be ordered oldest first. The first third of the period is
    compared with the last third; a change in average score above 0.2 is
    'improving', below -0.2 'declining', otherwise 'stable'.

    When all entries fall within two days, thirds are taken by count instead
    of by time.
    """
    if len(entries) < 3:
        return "stable"

    ordinals = [d.toordinal() for d, _ in entries]
    min_day, max_day = min(ordinals), max(ordinals)
    span = max_day - min_day

    if span < 2:
        third = len(entries) // 3
        first = entries[:third]
        last = entries[-third:]
    else:
        third_span = span / 3
        first_end = min_day + third_span
        last_start = max_day - third_span
        first = [e for e in entries if e[0].toordinal() <= first_end]
        last = [e for e in entries if e[0].toordinal() >= last_start]

    if not first or not last:
        return "stable"

    diff = _average(last) - _average(first)
    if diff > TREND_THRESHOLD:
        return "improving"
    if diff < -TREND_THRESHOLD:
        return "declining"
    return "stable"


def analyze_mood_pattern(moods: Sequence[str]) -> str:
    """
    One-sentence reading of recent moods (newest first) for the AI prompt context.
    Only the latest seven moods are considered.
    """
    if not moods:
        return "No recent mood data."

    recent = list(moods[:7])
    happy = sum(1 for m in recent if m in HAPPY_MOODS)
    difficult = sum(1 for m in recent if m in DIFFICULT_MOODS)
    neutral = sum(1 for m in recent if m in NEUTRAL_MOODS)

    if difficult > happy * 2:
        return "They're going through a tough period. Be extra gentle and validating."
    if happy > difficult * 2:
        return "They're in a good place right now. Help them explore or savor this."
    if neutral > len(recent) / 2:
        return (
            "They've been feeling flat or neutral. "
            "Help them connect with what's beneath the surface."
        )
    if len(recent) > 1:
        latest, previous = recent[0], recent[1]
        if latest in HAPPY_MOODS and previous in DIFFICULT_MOODS:
            return "They're coming out of a difficult period. Acknowledge the shift."
        if latest in DIFFICULT_MOODS and previous in HAPPY_MOODS:
            return "Things have gotten harder recently. Be compassionate about the dip."

    return "Their moods have been mixed. Help them explore what's driving the variation."


# ══════════════════════════════════════════════════════════════════════════
# Tags & text
# ══════════════════════════════════════════════════════════════════════════

def top_tags(tag_lists: Iterable[Optional[Sequence[str]]], limit: int = 5) -> List[dict]:
    counts: Counter = Counter()
    for tags in tag_lists:
        if tags:
            counts.update(tags)
    return [{"tag": tag, "count": count} for tag, count in counts.most_common(limit)]


def unique_recent_tags(tag_lists: Iterable[Optional[Sequence[str]]], limit: int = 5) -> List[str]:
    """Distinct tags in first-seen order (input is newest first)."""
    seen: List[str] = []
    for tags in tag_lists:
        for tag in tags or []:
            if tag not in seen:
                seen.append(tag)
    return seen[:limit]


def count_words(text: str) -> int:
    return len(text.split())
