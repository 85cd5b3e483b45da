from __future__ import annotations

"""
interview_core.py — DevInterview Pro core

- Question catalog loading/validation (questions.json).
- Read-progress tracking over a local key-value store:
    - "disk": progress_store.json (one JSON object, slot name -> text)
    - "session": in-memory only (Streamlit Cloud friendly)
- Substring search across every question, grouped by topic.
- Progress statistics derived on demand.

This file intentionally does NOT import Streamlit.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from json import JSONDecodeError
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

logger = logging.getLogger(__name__)


# ============================================================
# Paths
# ============================================================
QUESTIONS_FILE = Path("questions.json")
PROGRESS_STORE_FILE = Path("progress_store.json")

STORAGE_KEY = "devinterview_progress"


# ============================================================
# Persistence backend
# ============================================================
# "disk"   -> read/write PROGRESS_STORE_FILE
# "session"-> no disk reads/writes (caller keeps the store in session_state)
PERSISTENCE_BACKEND = "disk"


def set_persistence_backend(mode: str) -> None:
    global PERSISTENCE_BACKEND
    m = str(mode or "").strip().lower()
    if m not in ("disk", "session"):
        m = "disk"
    PERSISTENCE_BACKEND = m


# ============================================================
# Constants
# ============================================================
TOPIC_DESCRIPTIONS = {
    "javascript": "Core JS concepts every developer must know — from closures to async/await, the event loop, and ES6+ features.",
    "css": "Layouts, animations, specificity, responsive design, and modern CSS features for production-ready UIs.",
    "html": "Semantic markup, accessibility, forms, performance, and HTML5 APIs used in real projects.",
    "nodejs": "Server-side JavaScript, event loop, streams, modules, file system, and Node.js runtime concepts.",
    "expressjs": "REST API development, middleware, authentication, error handling, and production-ready patterns.",
    "angular": "Angular 16 components, state management, RxJS, routing, performance, and enterprise patterns.",
    "oracle": "Oracle SQL, PL/SQL, indexing, partitioning, analytic functions, and query optimization.",
    "project": "Describe your project experience, architecture decisions, challenges, and 4-year expertise.",
}

QuestionId = Union[int, str]
ProgressMap = Dict[str, Dict[str, bool]]


class CatalogError(ValueError):
    """The question catalog is missing or malformed. Fatal for the session."""


# ============================================================
# Helpers
# ============================================================
def safe_load_json(path: Path) -> Any:
    try:
        txt = path.read_text(encoding="utf-8")
    except Exception as e:
        raise CatalogError(f"Failed reading {path}: {e}") from e
    try:
        return json.loads(txt)
    except JSONDecodeError as e:
        raise CatalogError(f"Invalid JSON in {path} (line {e.lineno}, col {e.colno}): {e.msg}") from e


def atomic_write_json(path: Path, data: Any, indent: int = 2) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=indent, ensure_ascii=False), encoding="utf-8")
    tmp.replace(path)


def round_half_up_pct(read: int, total: int) -> int:
    """round(read / total * 100) with .5 going up; 0 when total is 0."""
    if total <= 0:
        return 0
    return (200 * read + total) // (2 * total)


def qid_key(question_id: QuestionId) -> str:
    return str(question_id)


# ============================================================
# Data model
# ============================================================
@dataclass(frozen=True)
class Question:
    id: int
    question: str
    answer: str
    example: str = ""


@dataclass(frozen=True)
class Topic:
    id: str
    name: str
    icon: str = ""
    questions: Tuple[Question, ...] = ()


@dataclass(frozen=True)
class SearchEntry:
    id: int
    question: str
    answer: str
    example: str
    topic_id: str
    topic_name: str
    topic_icon: str


@dataclass(frozen=True)
class Progress:
    read: int
    total: int
    pct: int

    def as_dict(self) -> Dict[str, int]:
        return {"read": self.read, "total": self.total, "pct": self.pct}


@dataclass(frozen=True)
class PersistResult:
    ok: bool
    error: Optional[str] = None


# ============================================================
# Catalog
# ============================================================
def _parse_question(raw: Any, topic_id: str, idx: int) -> Question:
    if not isinstance(raw, dict):
        raise CatalogError(f"Topic '{topic_id}' question[{idx}] must be an object.")
    req = {"id", "question", "answer"}
    if not req.issubset(raw.keys()):
        raise CatalogError(f"Bad question entry in topic '{topic_id}' (index {idx}). Need {sorted(req)}.")
    try:
        qid = int(raw["id"])
    except Exception:
        raise CatalogError(f"Topic '{topic_id}' question id {raw.get('id')!r} must be an int.")
    return Question(
        id=qid,
        question=str(raw["question"]),
        answer=str(raw["answer"]),
        example=str(raw.get("example", "") or ""),
    )


def _parse_topic(raw: Any, idx: int) -> Topic:
    if not isinstance(raw, dict):
        raise CatalogError(f"topics[{idx}] must be an object.")
    if "id" not in raw or "name" not in raw:
        raise CatalogError(f"Bad topic entry at index {idx}. Need id + name.")
    topic_id = str(raw["id"])
    qs = raw.get("questions", [])
    if not isinstance(qs, list):
        raise CatalogError(f"Topic '{topic_id}' questions must be a list.")

    questions: List[Question] = []
    seen: Set[int] = set()
    for i, q in enumerate(qs):
        parsed = _parse_question(q, topic_id, i)
        if parsed.id in seen:
            raise CatalogError(f"Duplicate question id within topic: {topic_id}::{parsed.id}")
        seen.add(parsed.id)
        questions.append(parsed)

    return Topic(
        id=topic_id,
        name=str(raw["name"]),
        icon=str(raw.get("icon", "") or ""),
        questions=tuple(questions),
    )


class QuestionStore:
    """Immutable topic/question catalog, in document order."""

    def __init__(self, topics: Iterable[Topic] = ()):
        self._topics: Tuple[Topic, ...] = tuple(topics)
        self._by_id: Dict[str, Topic] = {}
        for t in self._topics:
            if t.id in self._by_id:
                raise CatalogError(f"Duplicate topic id: {t.id}")
            self._by_id[t.id] = t

    @classmethod
    def from_document(cls, data: Any) -> "QuestionStore":
        if not isinstance(data, dict) or not isinstance(data.get("topics"), list):
            raise CatalogError('Question catalog must be {"topics": [ ... ]}')
        return cls(_parse_topic(t, i) for i, t in enumerate(data["topics"]))

    @property
    def topics(self) -> Tuple[Topic, ...]:
        return self._topics

    def get_topic(self, topic_id: str) -> Optional[Topic]:
        return self._by_id.get(str(topic_id or ""))

    def has_topic(self, topic_id: str) -> bool:
        return self.get_topic(topic_id) is not None

    def question_count(self) -> int:
        return sum(len(t.questions) for t in self._topics)


def load_catalog(path: Path = QUESTIONS_FILE) -> QuestionStore:
    if not path.exists():
        raise CatalogError(f"Missing question catalog: {path}")
    store = QuestionStore.from_document(safe_load_json(path))
    logger.info("Loaded %d topics / %d questions from %s", len(store.topics), store.question_count(), path)
    return store


def topic_description(topic_id: str) -> str:
    return TOPIC_DESCRIPTIONS.get(topic_id, "")


# ============================================================
# Key-value stores
# ============================================================
class KeyValueStore:
    """Named text slots. get() returns None for a missing slot."""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.slots: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.slots.get(key)

    def set(self, key: str, value: str) -> None:
        self.slots[key] = value


class DiskStore(KeyValueStore):
    """All slots in one JSON object on disk, rewritten atomically on every set()."""

    def __init__(self, path: Path = PROGRESS_STORE_FILE):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        data = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must hold a JSON object")
        return data

    def get(self, key: str) -> Optional[str]:
        value = self._read_all().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        try:
            slots = self._read_all()
        except (ValueError, OSError):
            # unreadable store file gets replaced
            slots = {}
        slots[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        atomic_write_json(self.path, slots, indent=2)


def make_store() -> KeyValueStore:
    if PERSISTENCE_BACKEND == "disk":
        return DiskStore(PROGRESS_STORE_FILE)
    return MemoryStore()


# ============================================================
# Progress tracking
# ============================================================
def _coerce_progress(raw: Any) -> ProgressMap:
    if not isinstance(raw, dict):
        return {}
    out: ProgressMap = {}
    for tid, entries in raw.items():
        if not isinstance(entries, dict):
            continue
        kept = {str(qid): True for qid, flag in entries.items() if flag}
        if kept:
            out[str(tid)] = kept
    return out


class ProgressTracker:
    """
    Per-topic read state:
        {"javascript": {"1": true, "2": true}, "css": {...}}

    Presence means read. Every mutation writes the whole map back to the
    store before returning; write failures are reported, never raised.
    """

    def __init__(self, store: KeyValueStore, key: str = STORAGE_KEY):
        self.store = store
        self.key = key
        self.progress: ProgressMap = {}
        self.last_result: PersistResult = PersistResult(ok=True)

    def load(self) -> ProgressMap:
        try:
            txt = self.store.get(self.key)
            raw = json.loads(txt) if txt else {}
        except Exception as e:
            logger.warning("Ignoring unreadable progress in slot %r: %s", self.key, e)
            raw = {}
        self.progress = _coerce_progress(raw)
        return self.progress

    def persist(self) -> PersistResult:
        try:
            self.store.set(self.key, json.dumps(self.progress, ensure_ascii=False))
        except Exception as e:
            logger.warning("Progress not saved (slot %r): %s", self.key, e)
            self.last_result = PersistResult(ok=False, error=str(e))
        else:
            self.last_result = PersistResult(ok=True)
        return self.last_result

    def is_read(self, topic_id: str, question_id: QuestionId) -> bool:
        return bool(self.progress.get(topic_id, {}).get(qid_key(question_id)))

    def toggle_read(self, topic_id: str, question_id: QuestionId) -> bool:
        entries = self.progress.setdefault(topic_id, {})
        k = qid_key(question_id)
        if entries.get(k):
            del entries[k]
        else:
            entries[k] = True
        if not entries:
            del self.progress[topic_id]
        self.persist()
        return self.is_read(topic_id, question_id)

    def mark_all_read(self, topic_id: str, question_ids: Iterable[QuestionId]) -> PersistResult:
        entries = self.progress.setdefault(topic_id, {})
        for qid in question_ids:
            entries[qid_key(qid)] = True
        if not entries:
            del self.progress[topic_id]
        return self.persist()

    def reset(self, topic_id: Optional[str] = None) -> PersistResult:
        if topic_id is None:
            self.progress.clear()
        else:
            self.progress.pop(topic_id, None)
        return self.persist()

    def read_ids(self, topic_id: str) -> Set[str]:
        return set(self.progress.get(topic_id, {}))

    def read_count(self, topic_id: str) -> int:
        return len(self.progress.get(topic_id, {}))


# ============================================================
# Aggregation
# ============================================================
class ProgressAggregator:
    def __init__(self, catalog: QuestionStore, tracker: ProgressTracker):
        self.catalog = catalog
        self.tracker = tracker

    def topic_progress(self, topic_id: str) -> Progress:
        topic = self.catalog.get_topic(topic_id)
        if topic is None:
            return Progress(0, 0, 0)
        total = len(topic.questions)
        # raw entry count; stale ids from an older catalog still count
        read = self.tracker.read_count(topic.id)
        return Progress(read, total, round_half_up_pct(read, total))

    def total_progress(self) -> Progress:
        read = 0
        total = 0
        for t in self.catalog.topics:
            p = self.topic_progress(t.id)
            read += p.read
            total += p.total
        return Progress(read, total, round_half_up_pct(read, total))

    def header_stats(self) -> Dict[str, int]:
        tp = self.total_progress()
        return {
            "total_questions": self.catalog.question_count(),
            "completed": tp.read,
            "pct": tp.pct,
            "topics": len(self.catalog.topics),
        }


# ============================================================
# Search
# ============================================================
class SearchIndex:
    def __init__(self, catalog: QuestionStore):
        self.entries: List[SearchEntry] = [
            SearchEntry(
                id=q.id,
                question=q.question,
                answer=q.answer,
                example=q.example,
                topic_id=t.id,
                topic_name=t.name,
                topic_icon=t.icon,
            )
            for t in catalog.topics
            for q in t.questions
        ]

    def search(self, term: str) -> List[SearchEntry]:
        t = (term or "").strip().lower()
        return [
            e for e in self.entries
            if t in e.question.lower()
            or t in e.answer.lower()
            or t in e.example.lower()
            or t in e.topic_name.lower()
        ]

    @staticmethod
    def group_by_topic(matches: Iterable[SearchEntry]) -> Dict[str, List[SearchEntry]]:
        grouped: Dict[str, List[SearchEntry]] = {}
        for m in matches:
            grouped.setdefault(m.topic_id, []).append(m)
        return grouped

    @staticmethod
    def matched_topic_names(matches: Iterable[SearchEntry]) -> List[str]:
        return list(dict.fromkeys(m.topic_name for m in matches))


# ============================================================
# Session
# ============================================================
@dataclass
class StudySession:
    """Everything one user session works against; built once at startup."""

    catalog: QuestionStore
    tracker: ProgressTracker
    index: SearchIndex = field(init=False)
    aggregator: ProgressAggregator = field(init=False)

    def __post_init__(self) -> None:
        self.index = SearchIndex(self.catalog)
        self.aggregator = ProgressAggregator(self.catalog, self.tracker)

    @classmethod
    def open(cls, questions_path: Path = QUESTIONS_FILE, store: Optional[KeyValueStore] = None) -> "StudySession":
        catalog = load_catalog(questions_path)
        tracker = ProgressTracker(store if store is not None else make_store())
        tracker.load()
        return cls(catalog=catalog, tracker=tracker)

    def resolve_topic(self, topic_id: Optional[str]) -> Optional[Topic]:
        if not topic_id:
            return None
        return self.catalog.get_topic(topic_id)


# ============================================================
# Display helpers
# ============================================================
def escape_html(s: Any) -> str:
    return (
        str(s)
        .replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def highlight(text: str, term: str) -> str:
    safe = escape_html(text)
    needle = escape_html((term or "").strip())
    if not needle:
        return safe
    pattern = re.compile(f"({re.escape(needle)})", re.IGNORECASE)
    return pattern.sub(r"<mark>\1</mark>", safe)


def search_summary(term: str, matches: List[SearchEntry]) -> str:
    t = (term or "").strip()
    if not matches:
        return f'No questions found for "{t}"'
    topics = ", ".join(SearchIndex.matched_topic_names(matches))
    return f'Found {len(matches)} questions matching "{t}" across: {topics}'


def topic_count_line(topic: Topic, progress: Progress) -> str:
    return f"{len(topic.questions)} interview questions — {progress.read} completed"
