"""Entry handlers: what Drew says when a state is entered.

Each handler is a pure function of (context, event, settings). Nothing here
mutates the context or calls out; the same inputs always render the same reply.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import drew.config as cfg
from drew.events import AddProducts, AnswerScoping, Event, SelectJob, Unclear
from drew.state import ConversationContext, ConversationState, UserSettings, items_subtotal

S = ConversationState

JOB_QUICK_REPLIES = ("Panel upgrade", "EV charger", "Recessed lighting", "Ceiling fan", "Something else")
LABOR_QUICK_REPLIES = ("4 hours", "8 hours", "16 hours", "Custom")
MARKUP_QUICK_REPLIES = ("10%", "15%", "20%", "25%", "No markup")
REVIEW_QUICK_REPLIES = ("Yes, finalize", "Start over")
DONE_QUICK_REPLIES = ("Start new quote",)

CLARIFY_MESSAGES: Dict[ConversationState, str] = {
    S.GREETING: "Would you like to start a new quote?",
    S.JOB_SELECTION: "I didn't catch that job type. Could you pick from the options?",
    S.SCOPING: "I didn't recognize that answer. Could you pick from the options above?",
    S.CHECKLIST: "Would you like to confirm the materials, or skip?",
    S.PRODUCTS: "Would you like to add these products, or skip?",
    S.LABOR: "I need a number of hours. How many hours for this job?",
    S.MARKUP: "I need a percentage. What markup would you like?",
    S.REVIEW: "Would you like to finalize this quote, or start over?",
    S.DONE: "Would you like to start a new quote?",
    S.CLARIFY: "I'm not sure what you mean. Could you try again?",
}

STILL_UNCLEAR_MESSAGE = (
    "Sorry, I'm still not following. Pick one of the options below, or say 'start over'."
)


@dataclass(frozen=True)
class EntryResult:
    message: str
    quick_replies: Tuple[str, ...] = ()
    display: Optional[Dict[str, Any]] = None
    is_complete: bool = False


EntryHandler = Callable[[ConversationContext, Event, UserSettings], EntryResult]


# ---------------- money ----------------


def _format_money(val) -> str:
    """Currency with 2 decimals; passthrough for non-numeric values."""
    try:
        return f"{cfg.CURRENCY_SYMBOL}{float(val):,.2f}"
    except (TypeError, ValueError):
        return str(val)


def quote_breakdown(ctx: ConversationContext) -> Dict[str, float]:
    """Materials, markup and labor for the current quote.

    Markup applies to materials only, never to labor.
    """
    materials = items_subtotal(ctx.quote_items)
    markup_amount = materials * ((ctx.markup_percent or 0) / 100)
    labor = (ctx.labor_hours or 0) * (ctx.labor_rate or 0)
    return {
        "materials_subtotal": materials,
        "markup_amount": markup_amount,
        "labor_total": labor,
        "total": materials + markup_amount + labor,
    }


def calculate_total(ctx: ConversationContext) -> float:
    return quote_breakdown(ctx)["total"]


def quick_replies_for_state(state: Optional[ConversationState], ctx: ConversationContext) -> Tuple[str, ...]:
    if state == S.JOB_SELECTION:
        return JOB_QUICK_REPLIES
    if state == S.SCOPING:
        q = ctx.current_question
        return tuple(q.quick_replies) if q else ()
    if state == S.CHECKLIST:
        return ("Confirm", "Skip")
    if state == S.PRODUCTS:
        return ("Add all", "Skip products")
    if state == S.LABOR:
        return LABOR_QUICK_REPLIES
    if state == S.MARKUP:
        return MARKUP_QUICK_REPLIES
    if state == S.REVIEW:
        return REVIEW_QUICK_REPLIES
    if state in (S.DONE, S.GREETING):
        return DONE_QUICK_REPLIES
    return ()


# ---------------- entry handlers ----------------


def _greeting(_ctx, _event, _settings) -> EntryResult:
    return EntryResult(
        message="Hey! I'm Drew, your quoting assistant. What kind of job are we working on?",
        quick_replies=JOB_QUICK_REPLIES,
    )


def _job_selection(_ctx, _event, _settings) -> EntryResult:
    return EntryResult(
        message="What kind of job are we quoting today?",
        quick_replies=JOB_QUICK_REPLIES,
    )


def _scoping(ctx: ConversationContext, event: Event, _settings) -> EntryResult:
    question = ctx.current_question
    if question is None:
        return EntryResult(message="Let's move on.")

    if isinstance(event, AnswerScoping):
        prefix = f"{event.answer}, got it. "
    elif isinstance(event, SelectJob) and event.agent_message:
        prefix = f"{event.agent_message} "
    elif ctx.current_question_index == 0:
        prefix = f"{ctx.tradecraft.title if ctx.tradecraft else 'Got it'}! "
    else:
        prefix = ""
    return EntryResult(message=f"{prefix}{question.question}", quick_replies=tuple(question.quick_replies))


def _checklist(ctx: ConversationContext, _event, _settings) -> EntryResult:
    items = [asdict(i) for i in ctx.pending_checklist or ()]
    return EntryResult(
        message="Here's what you'll typically need. Uncheck anything you already have:",
        quick_replies=("Confirm", "Skip"),
        display={"type": "checklist", "checklist": items},
    )


def _products(ctx: ConversationContext, _event, _settings) -> EntryResult:
    products = [asdict(p) for p in ctx.pending_products or ()]
    return EntryResult(
        message=f"Found {len(products)} products. Select what you need:",
        quick_replies=("Add all", "Skip products"),
        display={"type": "products", "products": products},
    )


def _labor(_ctx: ConversationContext, event: Event, settings: UserSettings) -> EntryResult:
    rate = _format_money(settings.default_labor_rate or 0)
    message = f"How many labor hours for this job? (at {rate}/hr)"
    display = None
    if isinstance(event, AddProducts):
        added = [{"name": p.name, "qty": p.qty} for p in event.products if p.qty > 0]
        message = f"Added {len(added)} items to the quote. {message}"
        display = {"type": "added", "added_items": added}
    return EntryResult(message=message, quick_replies=LABOR_QUICK_REPLIES, display=display)


def _markup(_ctx, _event, settings: UserSettings) -> EntryResult:
    replies = MARKUP_QUICK_REPLIES
    default = settings.default_markup_percent
    if default is not None:
        label = f"{default:g}%"
        if label not in replies:
            replies = (label,) + replies
        return EntryResult(
            message=f"What markup percentage? (your default is {label})",
            quick_replies=replies,
        )
    return EntryResult(message="What markup percentage?", quick_replies=replies)


def _review(ctx: ConversationContext, _event, _settings) -> EntryResult:
    b = quote_breakdown(ctx)
    summary = {
        "type": "summary",
        "quote_name": ctx.quote_name,
        "client_name": ctx.client_name,
        "items": [
            {
                "name": i.name,
                "qty": i.qty,
                "unit": i.unit,
                "unit_price": i.unit_price,
                "line_total": round(i.unit_price * i.qty, 2),
            }
            for i in ctx.quote_items
        ],
        "materials_subtotal": round(b["materials_subtotal"], 2),
        "markup_percent": ctx.markup_percent or 0,
        "markup_amount": round(b["markup_amount"], 2),
        "labor_hours": ctx.labor_hours or 0,
        "labor_rate": ctx.labor_rate or 0,
        "labor_total": round(b["labor_total"], 2),
        "total": round(b["total"], 2),
    }
    return EntryResult(
        message=f"Quote ready! Total: {_format_money(b['total'])}. Ready to finalize?",
        quick_replies=REVIEW_QUICK_REPLIES,
        display=summary,
    )


def _done(ctx: ConversationContext, _event, _settings) -> EntryResult:
    name = f" \"{ctx.quote_name}\"" if ctx.quote_name else ""
    return EntryResult(
        message=f"Quote{name} saved! You can edit it anytime from the quotes list.",
        quick_replies=DONE_QUICK_REPLIES,
        is_complete=True,
    )


def _clarify(ctx: ConversationContext, event: Event, _settings) -> EntryResult:
    target = ctx.previous_state or S.JOB_SELECTION
    fallback_replies = quick_replies_for_state(target, ctx)
    if isinstance(event, Unclear):
        replies = tuple(event.quick_replies) or fallback_replies
        if event.agent_message:
            return EntryResult(message=event.agent_message, quick_replies=replies)
        if event.escalated:
            return EntryResult(message=STILL_UNCLEAR_MESSAGE, quick_replies=replies)
    return EntryResult(message=CLARIFY_MESSAGES[target], quick_replies=fallback_replies)


ENTRY_HANDLERS: Dict[ConversationState, EntryHandler] = {
    S.GREETING: _greeting,
    S.JOB_SELECTION: _job_selection,
    S.SCOPING: _scoping,
    S.CHECKLIST: _checklist,
    S.PRODUCTS: _products,
    S.LABOR: _labor,
    S.MARKUP: _markup,
    S.REVIEW: _review,
    S.DONE: _done,
    S.CLARIFY: _clarify,
}


def render(
    state: ConversationState, ctx: ConversationContext, event: Event, settings: UserSettings
) -> EntryResult:
    return ENTRY_HANDLERS[state](ctx, event, settings)
