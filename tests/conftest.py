import asyncio
import os
import sys
import warnings

import pytest

# Ensure project root is on sys.path for `import drew`, `import api`, etc.
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# Ensure OPENAI_API_KEY is set for imports that construct LLM/embeddings.
os.environ.setdefault("OPENAI_API_KEY", "sk-fake-for-tests")

# Suppress LangChain deprecation warnings
warnings.filterwarnings("ignore", category=DeprecationWarning, module="langchain.*")

from drew.collaborators import Collaborators, Interpretation  # noqa: E402
from drew.state import ChecklistItem, Product, ScopingQuestion, TradecraftDoc  # noqa: E402


class DummyTradecraft:
    def __init__(self, docs=None):
        self.docs = docs or {}
        self.calls = []

    async def get(self, job_type):
        self.calls.append(job_type)
        return self.docs.get(job_type)


class DummyInterpreter:
    """Returns canned interpretations and records what it was asked."""

    def __init__(self, job=None, clarify=None):
        self.job = job or Interpretation(success=False)
        self.clarify = clarify or Interpretation(success=False)
        self.job_calls = []
        self.clarify_calls = []

    async def interpret_job(self, text, job_types):
        self.job_calls.append(text)
        return self.job

    async def clarify_input(self, text, context):
        self.clarify_calls.append((text, context))
        return self.clarify


class DummyAdjuster:
    def __init__(self, adjustments=None, error=None, delay=0.0):
        self.adjustments = adjustments or []
        self.error = error
        self.delay = delay
        self.calls = []

    async def adjust_checklist(self, scoping_answers, checklist, job_type):
        self.calls.append((dict(scoping_answers), list(checklist), job_type))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.adjustments


class DummyCatalog:
    """Search results keyed by term; a term mapped to an exception raises it."""

    def __init__(self, results=None, delays=None):
        self.results = results or {}
        self.delays = delays or {}
        self.calls = []

    async def search(self, term, category=None, limit=2):
        self.calls.append((term, category, limit))
        if term in self.delays:
            await asyncio.sleep(self.delays[term])
        found = self.results.get(term, [])
        if isinstance(found, Exception):
            raise found
        return list(found)[:limit]


def panel_upgrade_doc(questions=True, checklist=True):
    return TradecraftDoc(
        job_type="panel_upgrade",
        title="Panel Upgrade",
        content="# Panel Upgrade",
        scoping_questions=(
            (
                ScopingQuestion(
                    id="current_service",
                    question="What size is the existing service?",
                    quick_replies=("60A", "100A", "150A", "Not sure"),
                ),
                ScopingQuestion(
                    id="new_service",
                    question="What size are we upgrading to?",
                    quick_replies=("200A", "225A", "400A"),
                ),
            )
            if questions
            else ()
        ),
        materials_checklist=(
            (
                ChecklistItem(
                    category="panel",
                    name="200A main breaker panel",
                    search_terms=("200 amp panel", "main breaker load center", "load center"),
                    default_qty=1,
                    required=True,
                ),
                ChecklistItem(
                    category="breakers",
                    name="Single-pole breakers",
                    search_terms=("20 amp breaker",),
                    default_qty=12,
                ),
            )
            if checklist
            else ()
        ),
    )


PANEL = Product(id="SKU-1", name="Square D 200A Panel", price=189.0)
BREAKER = Product(id="SKU-2", name="20A Breaker", price=6.5)
LOAD_CENTER = Product(id="SKU-3", name="Eaton 200A Load Center", price=175.0)


@pytest.fixture
def collaborators():
    """Factory for Collaborators built from dummies; override any part by keyword."""

    def _make(tradecraft=None, interpreter=None, adjuster=None, catalog=None, timeout_s=1.0):
        return Collaborators(
            tradecraft=tradecraft or DummyTradecraft({"panel_upgrade": panel_upgrade_doc()}),
            interpreter=interpreter or DummyInterpreter(),
            adjuster=adjuster or DummyAdjuster(),
            catalog=catalog or DummyCatalog(),
            timeout_s=timeout_s,
        )

    return _make
