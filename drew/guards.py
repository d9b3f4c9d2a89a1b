"""Named guards: pure predicates over the conversation context.

Guards never look at the event and never touch anything outside the context, so
the dispatcher may evaluate them as often as it likes (candidate selection,
automatic transitions, enrichment preconditions).
"""

from __future__ import annotations

from typing import Callable, Dict

from drew.state import ConversationContext, ConversationState

Guard = Callable[[ConversationContext], bool]


def has_more_scoping_questions(ctx: ConversationContext) -> bool:
    """Another question remains after the one currently being answered."""
    return ctx.current_question_index + 1 < len(ctx.scoping_questions)


def no_more_scoping_questions(ctx: ConversationContext) -> bool:
    return not has_more_scoping_questions(ctx)


def no_scoping_questions(ctx: ConversationContext) -> bool:
    """Nothing left to ask on entry (job has no questions, or all are answered)."""
    return ctx.current_question_index >= len(ctx.scoping_questions)


def has_checklist(ctx: ConversationContext) -> bool:
    return bool(ctx.pending_checklist)


def no_checklist(ctx: ConversationContext) -> bool:
    return not ctx.pending_checklist


def has_products(ctx: ConversationContext) -> bool:
    return bool(ctx.pending_products)


def no_products(ctx: ConversationContext) -> bool:
    return not ctx.pending_products


def can_retry_previous_state(ctx: ConversationContext) -> bool:
    return ctx.previous_state is not None and ctx.previous_state != ConversationState.CLARIFY


def has_scoping_answers(ctx: ConversationContext) -> bool:
    return bool(ctx.scoping_answers)


def has_confirmed_categories(ctx: ConversationContext) -> bool:
    return bool(ctx.confirmed_categories)


GUARDS: Dict[str, Guard] = {
    "has_more_scoping_questions": has_more_scoping_questions,
    "no_more_scoping_questions": no_more_scoping_questions,
    "no_scoping_questions": no_scoping_questions,
    "has_checklist": has_checklist,
    "no_checklist": no_checklist,
    "has_products": has_products,
    "no_products": no_products,
    "can_retry_previous_state": can_retry_previous_state,
    "has_scoping_answers": has_scoping_answers,
    "has_confirmed_categories": has_confirmed_categories,
}
