from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Dict

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import interview_core as core  # noqa: E402


def _q(qid: int, question: str, answer: str = "", example: str = "") -> Dict[str, Any]:
    return {"id": qid, "question": question, "answer": answer, "example": example}


@pytest.fixture
def catalog_doc() -> Dict[str, Any]:
    """javascript has 3 questions, css has 2."""
    return {
        "topics": [
            {
                "id": "javascript",
                "name": "JavaScript",
                "icon": "🟨",
                "questions": [
                    _q(1, "What is a closure?", "A function with its lexical scope.", "const f = () => x;"),
                    _q(2, "Explain the event loop.", "Tasks then microtasks.", "setTimeout(cb, 0);"),
                    _q(3, "let vs var?", "Block vs function scope.", "let a = 1;"),
                ],
            },
            {
                "id": "css",
                "name": "CSS",
                "icon": "🎨",
                "questions": [
                    _q(1, "How does specificity work?", "Ids beat classes beat elements.", "#a .b p {}"),
                    _q(2, "Grid or not?", "Use flexbox for one axis.", "display: grid;"),
                ],
            },
        ]
    }


@pytest.fixture
def catalog_path(tmp_path: Path, catalog_doc: Dict[str, Any]) -> Path:
    p = tmp_path / "questions.json"
    p.write_text(json.dumps(catalog_doc), encoding="utf-8")
    return p


@pytest.fixture
def catalog(catalog_doc: Dict[str, Any]) -> core.QuestionStore:
    return core.QuestionStore.from_document(catalog_doc)


@pytest.fixture
def store() -> core.MemoryStore:
    return core.MemoryStore()


@pytest.fixture
def tracker(store: core.MemoryStore) -> core.ProgressTracker:
    t = core.ProgressTracker(store)
    t.load()
    return t


@pytest.fixture
def aggregator(catalog: core.QuestionStore, tracker: core.ProgressTracker) -> core.ProgressAggregator:
    return core.ProgressAggregator(catalog, tracker)


@pytest.fixture
def index(catalog: core.QuestionStore) -> core.SearchIndex:
    return core.SearchIndex(catalog)


class FailingStore(core.KeyValueStore):
    """Reads nothing, every write raises (quota exceeded)."""

    def __init__(self):
        self.attempts = 0

    def get(self, key: str):
        return None

    def set(self, key: str, value: str) -> None:
        self.attempts += 1
        raise OSError("quota exceeded")


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()
