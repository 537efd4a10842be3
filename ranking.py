"""
Derived views over snapshots of the stored collections.

All functions here are pure: they take sequences of records plus an explicit
``now`` (epoch ms) and never touch storage.
"""
import time
from typing import Iterable, List, Optional, Sequence

from schemas import ALL_CATEGORIES, CATEGORIES, CategoryCount, ChainItem, ChainType, Question, RecentEntry

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS

TRENDING_LIMIT = 4
RECENT_LIMIT = 5
RECENCY_WINDOW_DAYS = 7


def now_ms() -> int:
    return int(time.time() * 1000)


def recency_score(created_at: int, now: int) -> int:
    """7 points for content under a day old, one less per full day, never negative."""
    return max(0, RECENCY_WINDOW_DAYS - (now - created_at) // DAY_MS)


def popularity_score(question: Question, now: int) -> int:
    return question.chain_count * 2 + recency_score(question.created_at, now)


def trending(questions: Sequence[Question], now: int, limit: int = TRENDING_LIMIT) -> List[Question]:
    """
    Highest popularity first. Equal scores go newest-first; anything still tied
    keeps its input order (sorted() is stable).
    """
    ranked = sorted(
        questions,
        key=lambda q: (popularity_score(q, now), q.created_at),
        reverse=True,
    )
    return ranked[:limit]


def category_stats(questions: Iterable[Question]) -> List[CategoryCount]:
    questions = list(questions)
    return [
        CategoryCount(name=name, count=sum(1 for q in questions if q.category == name))
        for name in CATEGORIES
    ]


def recent_content(
    questions: Iterable[Question],
    chain_items: Iterable[ChainItem],
    limit: int = RECENT_LIMIT,
) -> List[RecentEntry]:
    merged = [
        (q.created_at, RecentEntry(type="question", content=q.title, time=q.time, author=q.author))
        for q in questions
    ]
    merged += [
        (c.created_at, RecentEntry(type=c.type, content=c.text, time=c.time, author=c.author))
        for c in chain_items
    ]
    merged.sort(key=lambda pair: pair[0], reverse=True)
    return [entry for _, entry in merged[:limit]]


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'' if n == 1 else 's'} ago"


def format_time_ago(timestamp: int, now: Optional[int] = None) -> str:
    now = now_ms() if now is None else now
    diff = now - timestamp

    minutes = diff // MINUTE_MS
    hours = diff // HOUR_MS
    days = diff // DAY_MS

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    return _plural(days, "day")


def search(questions: Iterable[Question], query: str) -> List[Question]:
    needle = query.lower()
    return [
        q
        for q in questions
        if needle in q.title.lower() or needle in q.category.lower() or needle in q.author.lower()
    ]


def by_category(questions: Iterable[Question], category: Optional[str]) -> List[Question]:
    if not category or category == ALL_CATEGORIES:
        return list(questions)
    return [q for q in questions if q.category == category]


def next_chain_type(chain: Sequence[ChainItem]) -> ChainType:
    """The first reply answers the root question; after that entries alternate."""
    if not chain:
        return "answer"
    return "answer" if chain[-1].type == "question" else "question"
