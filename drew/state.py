"""Conversation state for the quote-building flow.

Everything here is frozen: the engine never mutates a context in place, every
transition produces a new value via ``dataclasses.replace``. The caller owns
storage and hands the serialised context back on the next turn.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import drew.config as cfg


class ConversationState(str, Enum):
    GREETING = "greeting"
    JOB_SELECTION = "job_selection"
    SCOPING = "scoping"
    CHECKLIST = "checklist"
    PRODUCTS = "products"
    LABOR = "labor"
    MARKUP = "markup"
    REVIEW = "review"
    DONE = "done"
    CLARIFY = "clarify"


INITIAL_STATE = ConversationState.GREETING
TERMINAL_STATE = ConversationState.DONE


@dataclass(frozen=True)
class QuoteItem:
    """A line on the quote."""

    product_id: str
    name: str
    unit_price: float
    qty: float
    unit: str = "ea"


@dataclass(frozen=True)
class ScopingQuestion:
    id: str
    question: str
    quick_replies: Tuple[str, ...] = ()
    store_as: str = ""


@dataclass(frozen=True)
class ChecklistItem:
    """A material category proposed to the user before product search."""

    category: str
    name: str
    search_terms: Tuple[str, ...] = ()
    default_qty: float = 1
    unit: str = "ea"
    required: bool = False
    notes: Optional[str] = None


@dataclass(frozen=True)
class TradecraftDoc:
    """Domain knowledge for one job type."""

    job_type: str
    title: str
    content: str = ""
    scoping_questions: Tuple[ScopingQuestion, ...] = ()
    materials_checklist: Tuple[ChecklistItem, ...] = ()


@dataclass(frozen=True)
class Product:
    """A catalog product offered for selection."""

    id: str
    name: str
    price: float
    unit: str = "ea"
    suggested_qty: float = 1


@dataclass(frozen=True)
class ProductSelection:
    """A product the user picked, with the quantity they want."""

    id: str
    name: str
    price: float
    qty: float
    unit: str = "ea"


@dataclass(frozen=True)
class Message:
    role: str  # user | assistant
    content: str


@dataclass(frozen=True)
class UserSettings:
    """Caller-supplied quoting defaults."""

    default_labor_rate: Optional[float] = None
    default_markup_percent: Optional[float] = None

    def with_defaults(self) -> "UserSettings":
        """Fill anything the caller left out from configuration."""
        return UserSettings(
            default_labor_rate=(
                self.default_labor_rate
                if self.default_labor_rate is not None
                else cfg.DEFAULT_LABOR_RATE
            ),
            default_markup_percent=(
                self.default_markup_percent
                if self.default_markup_percent is not None
                else cfg.DEFAULT_MARKUP_PERCENT
            ),
        )


@dataclass(frozen=True)
class ConversationContext:
    """Full conversation memory, round-tripped by the caller every turn."""

    # Quote data
    quote_items: Tuple[QuoteItem, ...] = ()
    quote_name: Optional[str] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    labor_hours: Optional[float] = None
    labor_rate: Optional[float] = None
    markup_percent: Optional[float] = None

    # Tradecraft and scoping
    tradecraft: Optional[TradecraftDoc] = None
    tradecraft_job_type: Optional[str] = None
    scoping_questions: Tuple[ScopingQuestion, ...] = ()
    current_question_index: int = 0
    scoping_answers: Dict[str, str] = field(default_factory=dict)

    # Checklist and products (never both pending)
    pending_checklist: Optional[Tuple[ChecklistItem, ...]] = None
    confirmed_categories: Optional[Tuple[str, ...]] = None
    pending_products: Optional[Tuple[Product, ...]] = None

    # Clarify bookkeeping
    previous_state: Optional[ConversationState] = None
    clarify_attempts: int = 0

    # Transcript, used for rendering continuity only
    messages: Tuple[Message, ...] = ()

    def evolve(self, **changes: Any) -> "ConversationContext":
        return replace(self, **changes)

    @property
    def current_question(self) -> Optional[ScopingQuestion]:
        idx = self.current_question_index
        if 0 <= idx < len(self.scoping_questions):
            return self.scoping_questions[idx]
        return None

    # ---------------- serialisation ----------------

    def to_dict(self) -> Dict[str, Any]:
        """Plain JSON-compatible dict (tuples become lists, enums their values)."""
        data = asdict(self)
        if self.previous_state is not None:
            data["previous_state"] = self.previous_state.value
        return _jsonable(data)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ConversationContext":
        if not data:
            return initial_context()
        prev = data.get("previous_state")
        pending_checklist = data.get("pending_checklist")
        pending_products = data.get("pending_products")
        confirmed = data.get("confirmed_categories")
        return cls(
            quote_items=tuple(_quote_item(d) for d in data.get("quote_items") or []),
            quote_name=data.get("quote_name"),
            client_name=data.get("client_name"),
            client_email=data.get("client_email"),
            client_phone=data.get("client_phone"),
            labor_hours=_opt_float(data.get("labor_hours")),
            labor_rate=_opt_float(data.get("labor_rate")),
            markup_percent=_opt_float(data.get("markup_percent")),
            tradecraft=tradecraft_from_dict(data["tradecraft"]) if data.get("tradecraft") else None,
            tradecraft_job_type=data.get("tradecraft_job_type"),
            scoping_questions=tuple(
                scoping_question_from_dict(q) for q in data.get("scoping_questions") or []
            ),
            current_question_index=int(data.get("current_question_index") or 0),
            scoping_answers={str(k): str(v) for k, v in (data.get("scoping_answers") or {}).items()},
            pending_checklist=(
                tuple(checklist_item_from_dict(i) for i in pending_checklist)
                if pending_checklist is not None
                else None
            ),
            confirmed_categories=tuple(confirmed) if confirmed is not None else None,
            pending_products=(
                tuple(product_from_dict(p) for p in pending_products)
                if pending_products is not None
                else None
            ),
            previous_state=ConversationState(prev) if prev else None,
            clarify_attempts=int(data.get("clarify_attempts") or 0),
            messages=tuple(
                Message(role=m.get("role", "user"), content=m.get("content", ""))
                for m in data.get("messages") or []
            ),
        )


def initial_context() -> ConversationContext:
    return ConversationContext()


# ---------------- small constructors (shared with collaborators) ----------------


def _opt_float(val: Any) -> Optional[float]:
    if val in (None, ""):
        return None
    return float(val)


def _jsonable(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {k: _jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonable(v) for v in obj]
    return obj


def _quote_item(d: Dict[str, Any]) -> QuoteItem:
    return QuoteItem(
        product_id=str(d.get("product_id") or d.get("productId") or ""),
        name=d.get("name", ""),
        unit_price=float(d.get("unit_price", d.get("unitPrice", 0)) or 0),
        qty=float(d.get("qty", 1) or 0),
        unit=d.get("unit") or "ea",
    )


def scoping_question_from_dict(d: Dict[str, Any]) -> ScopingQuestion:
    return ScopingQuestion(
        id=str(d.get("id", "")),
        question=d.get("question", ""),
        quick_replies=tuple(d.get("quick_replies") or d.get("quickReplies") or ()),
        store_as=d.get("store_as") or d.get("storeAs") or "",
    )


def _qty(d: Dict[str, Any], key: str, alt: str) -> float:
    """Stored quantity, defaulting to 1 only when absent (0 is kept)."""
    val = d.get(key)
    if val is None:
        val = d.get(alt)
    return 1.0 if val is None else float(val)


def checklist_item_from_dict(d: Dict[str, Any]) -> ChecklistItem:
    return ChecklistItem(
        category=d.get("category", ""),
        name=d.get("name") or d.get("category", ""),
        search_terms=tuple(d.get("search_terms") or d.get("searchTerms") or ()),
        default_qty=_qty(d, "default_qty", "defaultQty"),
        unit=d.get("unit") or "ea",
        required=bool(d.get("required", False)),
        notes=d.get("notes"),
    )


def product_from_dict(d: Dict[str, Any]) -> Product:
    return Product(
        id=str(d.get("id", "")),
        name=d.get("name", ""),
        price=float(d.get("price", d.get("unit_price", 0)) or 0),
        unit=d.get("unit") or "ea",
        suggested_qty=_qty(d, "suggested_qty", "suggestedQty"),
    )


def tradecraft_from_dict(d: Dict[str, Any]) -> TradecraftDoc:
    checklist = d.get("materials_checklist") or ()
    # Stored documents nest the checklist as {"items": [...]}
    if isinstance(checklist, dict):
        checklist = checklist.get("items") or ()
    return TradecraftDoc(
        job_type=d.get("job_type", ""),
        title=d.get("title", ""),
        content=d.get("content", ""),
        scoping_questions=tuple(
            scoping_question_from_dict(q) for q in d.get("scoping_questions") or ()
        ),
        materials_checklist=tuple(checklist_item_from_dict(i) for i in checklist),
    )


def items_subtotal(items: List[QuoteItem] | Tuple[QuoteItem, ...]) -> float:
    return sum(i.unit_price * i.qty for i in items)
