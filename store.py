"""
Content store: questions, chain items, users and the session pointer.

The store owns four keys of a ``KeyValueStorage``. Reads and writes are
wrapped so a broken or unreadable value never reaches the caller: a failed
read degrades to an empty result and a failed write is logged and dropped.
"""
import json
import logging
import threading
from typing import Callable, List, Optional, Tuple, Type, TypeVar

from pydantic import ValidationError

from database import KeyValueStorage
from ranking import (
    DAY_MS,
    HOUR_MS,
    by_category,
    category_stats,
    format_time_ago,
    next_chain_type,
    now_ms,
    recent_content,
    search,
    trending,
)
from schemas import CategoryCount, ChainItem, ChainType, Question, Record, RecentEntry, User

logger = logging.getLogger(__name__)

QUESTIONS_KEY = "kkojil_questions"
CHAINS_KEY = "kkojil_chains"
USERS_KEY = "kkojil_users"
CURRENT_USER_KEY = "kkojil_current_user"

EXCERPT_LENGTH = 100

R = TypeVar("R", bound=Record)


class ContentStore:
    def __init__(self, storage: KeyValueStorage, clock: Callable[[], int] = now_ms):
        self.storage = storage
        self.clock = clock
        # serializes read-modify-write sequences (append + parent recount, id issue)
        self._lock = threading.RLock()
        self._last_id = 0

    # ---------- raw storage access ----------

    def _read_list(self, key: str, model: Type[R]) -> List[R]:
        try:
            raw = self.storage.get_item(key)
            items = json.loads(raw) if raw else []
            if not isinstance(items, list):
                raise ValueError(f"expected a JSON list, got {type(items).__name__}")
        except Exception:
            logger.exception("Failed to load %s", key)
            return []

        records = []
        for item in items:
            # invalid entries are skipped, the rest still load
            try:
                records.append(model.model_validate(item))
            except ValidationError:
                logger.warning("Skipping invalid %s entry in %s: %r", model.__name__, key, item)
        return records

    def _write_list(self, key: str, records: List[Record]) -> None:
        try:
            self.storage.set_item(key, json.dumps([r.dump() for r in records], ensure_ascii=False))
        except Exception:
            logger.exception("Failed to save %s", key)

    def _next_id(self, now: int) -> int:
        with self._lock:
            self._last_id = max(now, self._last_id + 1)
            return self._last_id

    # ---------- questions ----------

    def list_questions(self) -> List[Question]:
        return self._read_list(QUESTIONS_KEY, Question)

    def save_questions(self, questions: List[Question]) -> None:
        self._write_list(QUESTIONS_KEY, questions)

    def get_question(self, question_id: int) -> Optional[Question]:
        return next((q for q in self.list_questions() if q.id == question_id), None)

    def add_question(self, title: str, category: str, author: str, time: Optional[str] = None) -> Question:
        with self._lock:
            now = self.clock()
            question = Question(
                id=self._next_id(now),
                title=title,
                category=category,
                author=author,
                time=time if time is not None else format_time_ago(now, now),
                chain_count=0,
                created_at=now,
            )
            self.save_questions([question] + self.list_questions())
        logger.info("Question %s added in %s by %s", question.id, category, author)
        return question

    def search_questions(self, query: str) -> List[Question]:
        return search(self.list_questions(), query)

    def questions_by_category(self, category: Optional[str]) -> List[Question]:
        return by_category(self.list_questions(), category)

    def filter_questions(self, query: Optional[str] = None, category: Optional[str] = None) -> List[Question]:
        questions = by_category(self.list_questions(), category)
        if query and query.strip():
            questions = search(questions, query)
        return questions

    # ---------- chain ----------

    def _all_chain_items(self) -> List[ChainItem]:
        return self._read_list(CHAINS_KEY, ChainItem)

    def list_chain_items(self, parent_id: int) -> List[ChainItem]:
        # sorted() is stable, so items sharing a timestamp stay in insertion order
        return sorted(
            (c for c in self._all_chain_items() if c.parent_id == parent_id),
            key=lambda c: c.created_at,
        )

    def append_chain_item(
        self,
        parent_id: int,
        text: str,
        author: str,
        time: Optional[str] = None,
        level: Optional[int] = None,
        type: Optional[ChainType] = None,
    ) -> ChainItem:
        """
        Append an entry to a question's chain and refresh the parent's cached
        chainCount (chain length + 1) and lastQuestion excerpt.

        ``level`` and ``type`` default to the entry's position in the chain and
        the answer/question alternation.
        """
        with self._lock:
            now = self.clock()
            all_items = self._all_chain_items()
            chain = sorted((c for c in all_items if c.parent_id == parent_id), key=lambda c: c.created_at)

            item = ChainItem(
                id=self._next_id(now),
                parent_id=parent_id,
                text=text,
                author=author,
                time=time if time is not None else format_time_ago(now, now),
                level=level if level is not None else len(chain) + 1,
                created_at=now,
                type=type or next_chain_type(chain),
            )
            self._write_list(CHAINS_KEY, all_items + [item])
            self._recount(parent_id)
        logger.info("Chain item %s (%s) appended to question %s", item.id, item.type, parent_id)
        return item

    def _recount(self, question_id: int) -> None:
        chain = self.list_chain_items(question_id)
        questions = self.list_questions()
        for i, q in enumerate(questions):
            if q.id == question_id:
                questions[i] = q.model_copy(
                    update={
                        "chain_count": len(chain) + 1,
                        "last_question": chain[-1].text[:EXCERPT_LENGTH] if chain else q.last_question,
                    }
                )
                self.save_questions(questions)
                return

    # ---------- derived views ----------

    def trending_questions(self) -> List[Question]:
        return trending(self.list_questions(), self.clock())

    def category_stats(self) -> List[CategoryCount]:
        return category_stats(self.list_questions())

    def recent_content(self) -> List[RecentEntry]:
        return recent_content(self.list_questions(), self._all_chain_items())

    def format_time_ago(self, timestamp: int) -> str:
        return format_time_ago(timestamp, self.clock())

    # ---------- users ----------

    def list_users(self) -> List[User]:
        return self._read_list(USERS_KEY, User)

    def save_users(self, users: List[User]) -> None:
        self._write_list(USERS_KEY, users)

    def registration_conflict(self, email: str, username: str) -> Optional[str]:
        """Name the field that blocks registration, email first."""
        users = self.list_users()
        if any(u.email == email for u in users):
            return "email"
        if any(u.username == username for u in users):
            return "username"
        return None

    def register_user(
        self,
        username: str,
        email: str,
        password: str,
        display_name: Optional[str] = None,
        bio: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Optional[User]:
        with self._lock:
            conflict = self.registration_conflict(email, username)
            if conflict:
                logger.info("Registration rejected: %s already in use", conflict)
                return None
            now = self.clock()
            user = User(
                id=self._next_id(now),
                username=username,
                email=email,
                password=password,
                display_name=display_name or username,
                bio=bio,
                joined_at=now,
                avatar=avatar,
            )
            self.save_users(self.list_users() + [user])
        logger.info("User %s registered", user.username)
        return user

    def check_username_availability(self, username: str) -> bool:
        return not any(u.username == username for u in self.list_users())

    def update_user(self, updated: User) -> None:
        with self._lock:
            users = self.list_users()
            self.save_users([updated if u.id == updated.id else u for u in users])
            current = self.get_current_user()
            if current and current.id == updated.id:
                self._set_session(updated)

    # ---------- session pointer ----------

    def _set_session(self, user: User) -> None:
        try:
            self.storage.set_item(CURRENT_USER_KEY, json.dumps(user.dump(), ensure_ascii=False))
        except Exception:
            logger.exception("Failed to save %s", CURRENT_USER_KEY)

    def login_user(self, email: str, password: str) -> Optional[User]:
        user = next((u for u in self.list_users() if u.email == email and u.password == password), None)
        if user:
            self._set_session(user)
            logger.info("User %s logged in", user.username)
        return user

    def get_current_user(self) -> Optional[User]:
        try:
            raw = self.storage.get_item(CURRENT_USER_KEY)
            return User.model_validate(json.loads(raw)) if raw else None
        except Exception:
            logger.exception("Failed to get current user")
            return None

    def logout_user(self) -> None:
        try:
            self.storage.remove_item(CURRENT_USER_KEY)
        except Exception:
            logger.exception("Failed to clear %s", CURRENT_USER_KEY)

    # ---------- activity ----------

    def user_activity(self, display_name: str) -> Tuple[List[Question], List[ChainItem]]:
        """Questions posted under ``display_name`` and its chain entries, grouped by question."""
        questions = self.list_questions()
        items = self._all_chain_items()
        mine = [q for q in questions if q.author == display_name]
        entries = []
        for q in questions:
            chain = sorted((c for c in items if c.parent_id == q.id), key=lambda c: c.created_at)
            entries += [c for c in chain if c.author == display_name]
        return mine, entries

    # ---------- seed data ----------

    def initialize_default_data(self) -> None:
        """
        Seed demo questions when the store has none. Each one gets
        ``chainCount - 1`` chain items so the cached count matches its chain.
        """
        if self.list_questions():
            return
        now = self.clock()
        questions = []
        items = []
        for qid, title, category, author, chain_count, last, age in SEED_QUESTIONS:
            created = now - age
            chain_length = chain_count - 1
            for level in range(1, chain_length + 1):
                kind = "answer" if level % 2 else "question"
                replies = SEED_ANSWERS if kind == "answer" else SEED_FOLLOW_UPS
                text = last if level == chain_length else replies[(qid + level) % len(replies)]
                at = created + age * level // (chain_length + 1)
                items.append(
                    ChainItem(
                        id=qid * 100 + level,
                        parent_id=qid,
                        text=text,
                        author=SEED_AUTHORS[(qid + level) % len(SEED_AUTHORS)],
                        time=format_time_ago(at, now),
                        level=level,
                        created_at=at,
                        type=kind,
                    )
                )
            questions.append(
                Question(
                    id=qid,
                    title=title,
                    category=category,
                    author=author,
                    time=format_time_ago(created, now),
                    chain_count=chain_count,
                    last_question=last,
                    created_at=created,
                )
            )
        with self._lock:
            self._write_list(CHAINS_KEY, self._all_chain_items() + items)
            self.save_questions(questions)
        logger.info("Seeded %d default questions with %d chain items", len(questions), len(items))


SEED_QUESTIONS = [
    (1, "What matters most when you are becoming a developer?", "development",
     "codingnewbie", 5, "Then which language should I start with?", 2 * HOUR_MS),
    (2, "Can artificial intelligence replace human creativity?", "philosophy",
     "thinker", 3, "What is the essence of creativity?", 4 * HOUR_MS),
    (3, "What is the most important issue in politics right now?", "politics",
     "civicminded", 8, "Issues vary, but the biggest problem is economic inequality.", 6 * HOUR_MS),
    (4, 'How do you get over "burnout"?', "daily",
     "tiredworker", 12, "Any tips for balancing rest and work?", 8 * HOUR_MS),
    (5, "Frontend or backend: which should I learn first?", "development",
     "careerworries", 15, "What are the realistic pros and cons of being full-stack?", DAY_MS),
    (6, "If you could live your life again, would you choose differently?", "philosophy",
     "whatif", 20, "Didn't past regrets make us who we are today?", 2 * DAY_MS),
]

SEED_ANSWERS = [
    "In my experience it comes down to consistency more than talent.",
    "It depends a lot on the situation, but I would start small.",
    "I went through the same thing; talking to people helped the most.",
    "Honestly, there is no single right answer here.",
]

SEED_FOLLOW_UPS = [
    "How would you apply that in practice?",
    "What would you do differently if you started over?",
    "Is that still true a few years later?",
    "Why do you think so many people disagree?",
]

SEED_AUTHORS = ["curious", "nightowl", "oldhand", "wanderer", "skeptic"]
