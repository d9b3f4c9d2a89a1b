"""Typed events that drive the conversation machine.

Each event class carries only the payload relevant to its tag. The tag lives on
the class (``Event.type``) so the transition table can be keyed by it.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import ClassVar, Optional, Tuple, Union

from drew.state import ProductSelection, TradecraftDoc


class EventType(str, Enum):
    START = "start"
    SELECT_JOB = "select_job"
    ANSWER_SCOPING = "answer_scoping"
    CONFIRM_CHECKLIST = "confirm_checklist"
    SKIP_CHECKLIST = "skip_checklist"
    ADD_PRODUCTS = "add_products"
    SKIP_PRODUCTS = "skip_products"
    SET_LABOR = "set_labor"
    SET_MARKUP = "set_markup"
    FINALIZE = "finalize"
    START_NEW = "start_new"
    UNCLEAR = "unclear"


@dataclass(frozen=True)
class Start:
    type: ClassVar[EventType] = EventType.START


@dataclass(frozen=True)
class SelectJob:
    job_type: str
    tradecraft: Optional[TradecraftDoc] = None
    agent_message: Optional[str] = None
    type: ClassVar[EventType] = EventType.SELECT_JOB


@dataclass(frozen=True)
class AnswerScoping:
    question_id: str
    answer: str
    type: ClassVar[EventType] = EventType.ANSWER_SCOPING


@dataclass(frozen=True)
class ConfirmChecklist:
    categories: Tuple[str, ...]
    type: ClassVar[EventType] = EventType.CONFIRM_CHECKLIST


@dataclass(frozen=True)
class SkipChecklist:
    type: ClassVar[EventType] = EventType.SKIP_CHECKLIST


@dataclass(frozen=True)
class AddProducts:
    products: Tuple[ProductSelection, ...]
    type: ClassVar[EventType] = EventType.ADD_PRODUCTS


@dataclass(frozen=True)
class SkipProducts:
    type: ClassVar[EventType] = EventType.SKIP_PRODUCTS


@dataclass(frozen=True)
class SetLabor:
    hours: float
    rate: float
    type: ClassVar[EventType] = EventType.SET_LABOR


@dataclass(frozen=True)
class SetMarkup:
    percent: float
    type: ClassVar[EventType] = EventType.SET_MARKUP


@dataclass(frozen=True)
class Finalize:
    quote_name: Optional[str] = None
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_phone: Optional[str] = None
    type: ClassVar[EventType] = EventType.FINALIZE


@dataclass(frozen=True)
class StartNew:
    type: ClassVar[EventType] = EventType.START_NEW


@dataclass(frozen=True)
class Unclear:
    """Catch-all: the input could not be classified in the current state.

    ``original_input`` is kept so the clarify state can retry interpretation.
    ``escalated`` is set once the trade agent has been asked for help.
    """

    original_input: str = ""
    agent_message: Optional[str] = None
    quick_replies: Tuple[str, ...] = ()
    clarified_intent: Optional[str] = None
    escalated: bool = False
    type: ClassVar[EventType] = EventType.UNCLEAR


Event = Union[
    Start,
    SelectJob,
    AnswerScoping,
    ConfirmChecklist,
    SkipChecklist,
    AddProducts,
    SkipProducts,
    SetLabor,
    SetMarkup,
    Finalize,
    StartNew,
    Unclear,
]
