"""Contracts for the external services the engine leans on.

The engine only sees these protocols. Default implementations live in
``drew.trade_agent`` (LLM), ``drew.tradecraft`` (knowledge base) and
``drew.catalog`` (product search); tests swap in dummies.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Dict, List, Optional, Protocol, Sequence, Tuple, TypeVar

import drew.config as cfg
from drew.state import ChecklistItem, Product, TradecraftDoc

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Interpretation:
    """What the trade agent made of some free text."""

    success: bool
    job_type: Optional[str] = None
    confidence: Optional[str] = None  # high | medium | low
    message: Optional[str] = None
    quick_replies: Tuple[str, ...] = ()
    clarified_intent: Optional[str] = None
    suggested_action: Optional[str] = None  # continue | rephrase_question | skip_question | go_back


@dataclass(frozen=True)
class ChecklistAdjustment:
    action: str  # add | remove | modify
    category: str
    name: Optional[str] = None
    reason: str = ""
    search_terms: Tuple[str, ...] = ()
    default_qty: Optional[float] = None
    unit: Optional[str] = None


class TradecraftLookup(Protocol):
    async def get(self, job_type: str) -> Optional[TradecraftDoc]: ...


class JobInterpreter(Protocol):
    async def interpret_job(self, text: str, job_types: Sequence[str]) -> Interpretation: ...

    async def clarify_input(self, text: str, context: Dict[str, Any]) -> Interpretation: ...


class ChecklistAdjuster(Protocol):
    async def adjust_checklist(
        self,
        scoping_answers: Dict[str, str],
        checklist: Sequence[ChecklistItem],
        job_type: Optional[str],
    ) -> List[ChecklistAdjustment]: ...


class ProductSearch(Protocol):
    async def search(
        self, term: str, category: Optional[str] = None, limit: int = 2
    ) -> List[Product]: ...


@dataclass
class Collaborators:
    """Everything dispatch may call out to during one turn."""

    tradecraft: TradecraftLookup
    interpreter: JobInterpreter
    adjuster: ChecklistAdjuster
    catalog: ProductSearch
    timeout_s: float = field(default_factory=lambda: cfg.COLLABORATOR_TIMEOUT_S)


async def soft_call(awaitable: Awaitable[T], default: T, *, what: str, timeout_s: float) -> T:
    """Await a collaborator call; timeouts and errors degrade to ``default``."""
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_s)
    except asyncio.TimeoutError:
        logger.warning("%s timed out after %.1fs; continuing without it", what, timeout_s)
    except Exception:
        logger.warning("%s failed; continuing without it", what, exc_info=True)
    return default
