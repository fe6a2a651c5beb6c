"""
Guardian dashboard: per-learner progress stats, overall totals, learner
detail, and the deterministic comparison summary.

Why:
    Guardians see the same numbers on every device; computing them server-side
    keeps the rounding and time formatting in one place.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
import logging
import math
from typing import Any, Callable, Iterable, List, Optional, Sequence, TypeVar

from backend.learning.repo import LearningRepoProtocol, RepoError
from backend.learning.usecases.reading import round_half_up


logger = logging.getLogger("moe.learning")

T = TypeVar("T")

RECENT_MASTERED_WORDS = 3
DETAIL_READING_LIMIT = 5
DETAIL_WORD_LIMIT = 10
WEEKLY_SESSION_TARGET = 7

NO_DATA_SUMMARY = (
    "Moe needs learning data to compare your children. Once they log study sessions, "
    "you'll see highlights, gaps, and next steps here."
)


def round_one_decimal(value: float) -> float:
    return math.floor(value * 10 + 0.5) / 10


def format_last_active(last: Optional[datetime], *, now: Optional[datetime] = None) -> str:
    if last is None:
        return "No activity yet"
    now = now or datetime.now(timezone.utc)
    if last.tzinfo is None:
        last = last.replace(tzinfo=timezone.utc)
    hours = math.floor((now - last).total_seconds() / 3600)
    days = math.floor(hours / 24)
    if hours < 1:
        return "Just now"
    if hours < 24:
        return f"{hours} hour{'s' if hours > 1 else ''} ago"
    if days == 1:
        return "1 day ago"
    return f"{days} days ago"


def weekly_progress(sessions_last_week: int) -> int:
    return min(round_half_up(sessions_last_week / WEEKLY_SESSION_TARGET * 100), 100)


@dataclass
class LearnerStats:
    id: str
    name: str
    age: Optional[int]
    grade: Optional[str]
    totalSessions: int = 0
    hoursLearned: float = 0.0
    lastActive: str = "No activity yet"
    weeklyProgress: int = 0
    wordsLearned: int = 0
    recentWords: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _tolerate_missing(op: Callable[[], T], default: T) -> T:
    try:
        return op()
    except RepoError as exc:
        if exc.code != "table_missing":
            raise
        return default


def _iso(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


class DashboardUseCase:
    def __init__(self, repo: LearningRepoProtocol, *, clock: Callable[[], datetime] | None = None) -> None:
        self._repo = repo
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def learner_stats(self, learner: dict) -> LearnerStats:
        """Stats for one learner row (`id`, `name`, `age`, `grade_level`).

        Behavior:
            - Tables that are not deployed count as no activity.
        """
        now = self._clock()
        sid = learner["id"]
        stats = _tolerate_missing(
            lambda: self._repo.study_stats(sid, since=now - timedelta(days=7)),
            {"total_sessions": 0, "total_minutes": 0, "sessions_since": 0, "last_session_at": None},
        )
        words_count, recent = _tolerate_missing(
            lambda: self._repo.mastered_words(sid, limit=RECENT_MASTERED_WORDS), (0, [])
        )
        return LearnerStats(
            id=sid,
            name=learner.get("name") or "",
            age=learner.get("age"),
            grade=learner.get("grade_level"),
            totalSessions=int(stats["total_sessions"]),
            hoursLearned=round_one_decimal(int(stats["total_minutes"]) / 60),
            lastActive=format_last_active(stats["last_session_at"], now=now),
            weeklyProgress=weekly_progress(int(stats["sessions_since"])),
            wordsLearned=int(words_count),
            recentWords=list(recent),
        )

    def overview(self, learners: Sequence[dict]) -> dict:
        """Return `{"children": [...], "stats": {...}}` for a guardian's learners."""
        children = [self.learner_stats(learner) for learner in learners]
        count = len(children)
        average = round_half_up(sum(c.weeklyProgress for c in children) / count) if count else 0
        return {
            "children": [c.to_dict() for c in children],
            "stats": {
                "totalChildren": count,
                "totalHours": round_one_decimal(sum(c.hoursLearned for c in children)),
                "totalSessions": sum(c.totalSessions for c in children),
                "averageProgress": average,
                "totalWordsLearned": sum(c.wordsLearned for c in children),
            },
        }

    def learner_detail(self, learner: dict) -> dict:
        """Stats plus recent reading activities and recently reviewed words."""
        sid = learner["id"]
        detail = self.learner_stats(learner).to_dict()
        readings = _tolerate_missing(
            lambda: self._repo.list_reading_activities(sid, limit=DETAIL_READING_LIMIT), []
        )
        words = _tolerate_missing(lambda: self._repo.list_words(sid, limit=DETAIL_WORD_LIMIT), [])
        detail["recentActivities"] = [
            {
                "id": r["id"],
                "type": "reading",
                "title": r.get("title") or "",
                "durationMinutes": int(r.get("duration_minutes") or 0),
                "comprehensionScore": int(r.get("comprehension_score") or 0),
                "wordsRead": int(r.get("words_read") or 0),
                "date": _iso(r.get("created_at")),
            }
            for r in readings
        ]
        detail["words"] = [
            {
                "id": w["id"],
                "word": w["word"],
                "definition": w.get("definition"),
                "simpleDefinition": (w.get("metadata") or {}).get("simpleDefinition"),
                "mastered": bool(w.get("mastered")),
                "timesReviewed": int(w.get("times_reviewed") or 0),
                "lastReviewedAt": _iso(w.get("last_reviewed_at")),
            }
            for w in words
        ]
        return detail


# --- Comparison summary -------------------------------------------------------------


@dataclass
class ChildMetrics:
    id: str
    name: str
    wordsLearned: float
    hoursLearned: float
    weeklyProgress: float
    totalSessions: float
    recentWords: List[str]


def _finite(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return 0
    return value


def normalize_children(raw: Iterable[Any]) -> List[ChildMetrics]:
    result: List[ChildMetrics] = []
    for index, child in enumerate(raw):
        child = child if isinstance(child, dict) else {}
        name = child.get("name")
        name = name.strip() if isinstance(name, str) else ""
        words = child.get("recentWords")
        result.append(
            ChildMetrics(
                id=child.get("id") or f"child-{index}",
                name=name or "Unknown Learner",
                wordsLearned=_finite(child.get("wordsLearned")),
                hoursLearned=_finite(child.get("hoursLearned")),
                weeklyProgress=_finite(child.get("weeklyProgress")),
                totalSessions=_finite(child.get("totalSessions")),
                recentWords=[w for w in words if isinstance(w, str) and w.strip()] if isinstance(words, list) else [],
            )
        )
    return result


def _plural(n: float, noun: str) -> str:
    return f"{noun}{'' if n == 1 else 's'}"


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _hours(value: float) -> str:
    return f"{_num(round_one_decimal(value))} {_plural(value, 'hour')}"


def _words(value: float) -> str:
    return f"{_num(value)} {_plural(value, 'word')}"


def compare_children_summary(raw_children: Iterable[Any]) -> str:
    """Markdown summary of highlights, gaps, support needed, wins and next steps."""
    children = normalize_children(raw_children)
    if not children:
        return NO_DATA_SUMMARY

    count = len(children)
    average_words = sum(c.wordsLearned for c in children) / count
    average_hours = sum(c.hoursLearned for c in children) / count
    average_weekly = sum(c.weeklyProgress for c in children) / count

    # sorted() is stable, so ties keep input order
    by_words = sorted(children, key=lambda c: c.wordsLearned, reverse=True)
    by_hours = sorted(children, key=lambda c: c.hoursLearned, reverse=True)
    top_words, bottom_words = by_words[0], by_words[-1]
    top_hours, bottom_hours = by_hours[0], by_hours[-1]
    words_gap = top_words.wordsLearned - bottom_words.wordsLearned
    hours_gap = top_hours.hoursLearned - bottom_hours.hoursLearned

    lines: List[str] = [
        f"**Moe compared {count} {_plural(count, 'learner')}.**",
        "",
        "### Quick Highlights",
        "",
        f"- **Vocabulary leader:** {top_words.name} with {_words(top_words.wordsLearned)} logged.",
        f"- **Study-time leader:** {top_hours.name} at {_hours(top_hours.hoursLearned)} total.",
        f"- **Average pace:** {_words(round_half_up(average_words))}, {_hours(average_hours)}, "
        f"and {round_half_up(average_weekly)}% weekly streaks.",
    ]
    if words_gap > 0 and count > 1:
        lines.append(
            f"- **Vocabulary gap:** {top_words.name} is ahead of {bottom_words.name} by {_words(words_gap)}."
        )
    if hours_gap > 0 and count > 1:
        lines.append(
            f"- **Practice gap:** {top_hours.name} has {_hours(round_one_decimal(hours_gap))} "
            f"more study time than {bottom_hours.name}."
        )

    support: List[str] = []
    behind = [c.name for c in children if c.wordsLearned < average_words * 0.5]
    low_weekly = [c.name for c in children if c.weeklyProgress < 25]
    idle = [c.name for c in children if c.totalSessions == 0 or c.hoursLearned < 0.25]
    if behind:
        support.append(
            f"- Vocabulary boost needed for {', '.join(behind)}. "
            "Encourage daily \"Hear It\" and Word Bank missions to close the gap."
        )
    if low_weekly:
        support.append(
            f"- Weekly streaks are under 25% for {', '.join(low_weekly)}. "
            "Set a simple goal (one reading or math session) to rebuild momentum."
        )
    if idle:
        support.append(
            f"- Missing study time: {', '.join(idle)} barely logged any minutes this week. "
            "Schedule a short guided session."
        )
    if support:
        lines += ["", "### Where Support Is Needed", "", *support]

    wins: List[str] = []
    for child in children:
        if child.wordsLearned >= average_words and child.weeklyProgress >= average_weekly:
            wins.append(f"- {child.name} is on track, use their progress to motivate siblings.")
        elif child.recentWords:
            n = len(child.recentWords)
            wins.append(
                f"- {child.name} added {n} new {_plural(n, 'word')}: {', '.join(child.recentWords[:3])}."
            )
    if wins:
        lines += ["", "### Celebrate Wins", "", *wins]

    lines += [
        "",
        "### Next Steps",
        "",
        "- Schedule a 15-minute family study block to help everyone log fresh progress.",
        "- Rotate Moe's Word Bank missions so each learner practices pronunciation and spelling.",
        "- Revisit goals in the parent dashboard next week to see how the gaps close.",
    ]
    return "\n".join(lines)


__all__ = [
    "DashboardUseCase",
    "LearnerStats",
    "compare_children_summary",
    "format_last_active",
    "weekly_progress",
]
