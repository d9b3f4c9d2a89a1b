"""Named actions: pure context transformers attached to transitions.

Every action returns a new context and leaves its input untouched. Table
actions share the ``(ctx, event) -> ctx`` signature; ``enter_clarify`` also needs
the state being left, and ``set_products``/``set_checklist`` are fed by the
enrichment step rather than by a user event.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable, Dict, Iterable, List, Sequence, Tuple

from drew.events import (
    AddProducts,
    AnswerScoping,
    ConfirmChecklist,
    Event,
    Finalize,
    SelectJob,
    SetLabor,
    SetMarkup,
)
from drew.state import (
    ChecklistItem,
    ConversationContext,
    ConversationState,
    Product,
    ProductSelection,
    QuoteItem,
    initial_context,
)

logger = logging.getLogger(__name__)

Action = Callable[[ConversationContext, Event], ConversationContext]


def load_tradecraft(ctx: ConversationContext, event: SelectJob) -> ConversationContext:
    """Seed scoping and checklist state from the selected job's document."""
    doc = event.tradecraft
    checklist = tuple(doc.materials_checklist) if doc else ()
    return ctx.evolve(
        tradecraft=doc,
        tradecraft_job_type=event.job_type,
        scoping_questions=tuple(doc.scoping_questions) if doc else (),
        current_question_index=0,
        scoping_answers={},
        pending_checklist=checklist or None,
        confirmed_categories=None,
        pending_products=None,
    )


def record_scoping_answer(ctx: ConversationContext, event: AnswerScoping) -> ConversationContext:
    answers = dict(ctx.scoping_answers)
    answers[event.question_id] = event.answer
    next_index = min(ctx.current_question_index + 1, len(ctx.scoping_questions))
    return ctx.evolve(scoping_answers=answers, current_question_index=next_index)


def confirm_checklist(ctx: ConversationContext, event: ConfirmChecklist) -> ConversationContext:
    return ctx.evolve(confirmed_categories=tuple(event.categories))


def clear_checklist(ctx: ConversationContext, _event: Event) -> ConversationContext:
    return ctx.evolve(pending_checklist=None, confirmed_categories=None)


def set_checklist(ctx: ConversationContext, checklist: Sequence[ChecklistItem]) -> ConversationContext:
    return ctx.evolve(pending_checklist=tuple(checklist) or None)


def set_products(ctx: ConversationContext, products: Sequence[Product]) -> ConversationContext:
    """Replace the pending checklist with the products resolved from it."""
    return ctx.evolve(pending_products=tuple(products) or None, pending_checklist=None)


def merge_quote_items(
    existing: Iterable[QuoteItem], incoming: Iterable[QuoteItem]
) -> Tuple[QuoteItem, ...]:
    """Merge by product id, keeping first-seen order.

    A product already on the quote takes the incoming quantity (a re-selection
    states the wanted quantity). It is not an "add more": quantities are never
    summed here.
    """
    merged: Dict[str, QuoteItem] = {}
    for item in existing:
        merged[item.product_id] = item
    for item in incoming:
        if item.product_id in merged:
            merged[item.product_id] = replace(merged[item.product_id], qty=item.qty)
        else:
            merged[item.product_id] = item
    return tuple(merged.values())


def _to_quote_item(p: ProductSelection) -> QuoteItem:
    return QuoteItem(product_id=p.id, name=p.name, unit_price=p.price, qty=p.qty, unit=p.unit)


def add_products(ctx: ConversationContext, event: AddProducts) -> ConversationContext:
    incoming: List[QuoteItem] = [_to_quote_item(p) for p in event.products if p.qty > 0]
    logger.info("Adding %d products to quote", len(incoming))
    return ctx.evolve(
        quote_items=merge_quote_items(ctx.quote_items, incoming),
        pending_products=None,
    )


def clear_products(ctx: ConversationContext, _event: Event) -> ConversationContext:
    return ctx.evolve(pending_products=None)


def set_labor(ctx: ConversationContext, event: SetLabor) -> ConversationContext:
    return ctx.evolve(labor_hours=event.hours, labor_rate=event.rate)


def set_markup(ctx: ConversationContext, event: SetMarkup) -> ConversationContext:
    return ctx.evolve(markup_percent=event.percent)


def finalize_quote(ctx: ConversationContext, event: Finalize) -> ConversationContext:
    """Stamp whatever quote metadata came with the finalize command."""
    changes = {
        k: v
        for k, v in (
            ("quote_name", event.quote_name),
            ("client_name", event.client_name),
            ("client_email", event.client_email),
            ("client_phone", event.client_phone),
        )
        if v
    }
    return ctx.evolve(**changes) if changes else ctx


def enter_clarify(
    ctx: ConversationContext, _event: Event, from_state: ConversationState
) -> ConversationContext:
    return ctx.evolve(previous_state=from_state, clarify_attempts=ctx.clarify_attempts + 1)


def reset(_ctx: ConversationContext, _event: Event) -> ConversationContext:
    return initial_context()


ACTIONS: Dict[str, Action] = {
    "load_tradecraft": load_tradecraft,
    "record_scoping_answer": record_scoping_answer,
    "confirm_checklist": confirm_checklist,
    "clear_checklist": clear_checklist,
    "add_products": add_products,
    "clear_products": clear_products,
    "set_labor": set_labor,
    "set_markup": set_markup,
    "finalize_quote": finalize_quote,
    "enter_clarify": enter_clarify,  # type: ignore[dict-item]
    "reset": reset,
}

# Actions that need the state being left as a third argument
STATEFUL_ACTIONS = frozenset({"enter_clarify"})
