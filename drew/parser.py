"""Turn one user turn (free text or a UI pseudo-command) into exactly one event.

Cascade, cheapest first:

    1. global override     "start over" and friends -> StartNew, in any state
    2. deterministic       regex / alias / quick-reply matching per state
    3. delegated           trade agent, only for open-ended input
                           (job description, escalated clarification)
    4. Unclear             carrying the original text for a later retry
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import drew.config as cfg
from drew.collaborators import Collaborators, Interpretation, soft_call
from drew.events import (
    AddProducts,
    AnswerScoping,
    ConfirmChecklist,
    Event,
    Finalize,
    SelectJob,
    SetLabor,
    SetMarkup,
    SkipChecklist,
    SkipProducts,
    Start,
    StartNew,
    Unclear,
)
from drew.guards import can_retry_previous_state
from drew.intent_helpers import (
    ADD_SELECTED_PREFIX,
    CONFIRM_CHECKLIST_PREFIX,
    FINALIZE_PREFIX,
    KNOWN_JOB_TYPES,
    _is_acknowledgement,
    _is_add_all,
    _is_finalize,
    _is_skip_checklist,
    _is_skip_products,
    _is_start_new,
    _normalize,
    match_job_alias,
    match_quick_reply,
    parse_hours,
    parse_percent,
    parse_pseudo_command,
    quick_match_job_type,
)
from drew.state import ConversationContext, ConversationState, ProductSelection, UserSettings

logger = logging.getLogger(__name__)

S = ConversationState


async def parse_event(
    state: ConversationState,
    text: str,
    ctx: ConversationContext,
    collaborators: Collaborators,
    settings: UserSettings,
) -> Event:
    raw = (text or "").strip()

    # Global commands win everywhere, clarify included
    if _is_start_new(raw):
        return StartNew()

    if state == S.GREETING:
        return Start()
    if state == S.JOB_SELECTION:
        return await _parse_job_selection(raw, collaborators)
    if state == S.SCOPING:
        return _parse_scoping(raw, ctx)
    if state == S.CHECKLIST:
        return _parse_checklist(raw, ctx)
    if state == S.PRODUCTS:
        return _parse_products(raw, ctx)
    if state == S.LABOR:
        hours = parse_hours(raw)
        if hours is not None:
            return SetLabor(hours=hours, rate=float(settings.default_labor_rate or 0))
        return Unclear(original_input=raw)
    if state == S.MARKUP:
        return _parse_markup(raw, settings)
    if state == S.REVIEW:
        return _parse_review(raw)
    if state == S.DONE:
        return StartNew()
    if state == S.CLARIFY:
        return await _parse_clarify(raw, ctx, collaborators, settings)
    return Unclear(original_input=raw)


# ---------------- per-state parsing ----------------


async def _parse_job_selection(raw: str, collaborators: Collaborators) -> Event:
    if not raw:
        return Unclear(original_input=raw)

    # 1) exact alias (no AI)
    job_type = match_job_alias(raw)
    if job_type:
        return await _select_job(job_type, collaborators)

    # 2) keyword heuristic (still no AI)
    quick = quick_match_job_type(raw)
    if quick:
        logger.info("Quick job match: %s (%s)", quick[0], quick[1])
        return await _select_job(quick[0], collaborators)

    # 3) delegated interpretation
    if not cfg.ENABLE_LLM_INTERPRETATION:
        return Unclear(original_input=raw)
    logger.info("Asking trade agent to interpret job description")
    interp = await soft_call(
        collaborators.interpreter.interpret_job(raw, KNOWN_JOB_TYPES),
        Interpretation(success=False),
        what="Job interpretation",
        timeout_s=collaborators.timeout_s,
    )
    if interp.success and interp.job_type:
        return await _select_job(interp.job_type, collaborators, agent_message=interp.message)

    # 4) could not resolve: keep the agent's question for the clarify prompt
    return Unclear(
        original_input=raw,
        agent_message=interp.message,
        quick_replies=tuple(interp.quick_replies),
    )


async def _select_job(
    job_type: str, collaborators: Collaborators, agent_message: Optional[str] = None
) -> SelectJob:
    doc = await soft_call(
        collaborators.tradecraft.get(job_type),
        None,
        what=f"Tradecraft lookup for {job_type}",
        timeout_s=collaborators.timeout_s,
    )
    if doc is None:
        logger.info("No tradecraft document for %s; continuing without guidance", job_type)
    return SelectJob(job_type=job_type, tradecraft=doc, agent_message=agent_message)


def _parse_scoping(raw: str, ctx: ConversationContext) -> Event:
    question = ctx.current_question
    if question is None or not raw:
        return Unclear(original_input=raw)
    if not question.quick_replies:
        # Open question: any answer will do
        return AnswerScoping(question_id=question.id, answer=raw)
    matched = match_quick_reply(raw, question.quick_replies)
    if matched:
        return AnswerScoping(question_id=question.id, answer=matched)
    return Unclear(original_input=raw)


def _parse_checklist(raw: str, ctx: ConversationContext) -> Event:
    if _is_skip_checklist(raw):
        return SkipChecklist()
    categories = parse_pseudo_command(raw, CONFIRM_CHECKLIST_PREFIX)
    if isinstance(categories, list):
        return ConfirmChecklist(categories=tuple(str(c) for c in categories))
    if _is_acknowledgement(raw) and ctx.pending_checklist:
        return ConfirmChecklist(categories=tuple(i.category for i in ctx.pending_checklist))
    return Unclear(original_input=raw)


def _parse_products(raw: str, ctx: ConversationContext) -> Event:
    if _is_skip_products(raw):
        return SkipProducts()
    selected = parse_pseudo_command(raw, ADD_SELECTED_PREFIX)
    if isinstance(selected, list):
        return AddProducts(products=tuple(_selections_from_payload(selected)))
    if (_is_add_all(raw) or _is_acknowledgement(raw)) and ctx.pending_products:
        return AddProducts(
            products=tuple(
                ProductSelection(id=p.id, name=p.name, price=p.price, qty=p.suggested_qty, unit=p.unit)
                for p in ctx.pending_products
            )
        )
    return Unclear(original_input=raw)


def _selections_from_payload(items: List[Any]) -> List[ProductSelection]:
    out: List[ProductSelection] = []
    for d in items:
        if not isinstance(d, dict) or not d.get("id"):
            continue
        try:
            out.append(
                ProductSelection(
                    id=str(d["id"]),
                    name=str(d.get("name", "")),
                    price=float(d.get("price", 0) or 0),
                    qty=float(d.get("qty", 1) or 0),
                    unit=d.get("unit") or "ea",
                )
            )
        except (TypeError, ValueError):
            logger.warning("Dropping malformed product selection: %r", d)
    return out


def _parse_markup(raw: str, settings: UserSettings) -> Event:
    if _normalize(raw) in {"default", "use default"} and settings.default_markup_percent is not None:
        return SetMarkup(percent=float(settings.default_markup_percent))
    percent = parse_percent(raw)
    if percent is not None:
        return SetMarkup(percent=percent)
    return Unclear(original_input=raw)


def _parse_review(raw: str) -> Event:
    meta = parse_pseudo_command(raw, FINALIZE_PREFIX)
    if isinstance(meta, dict):
        return Finalize(
            quote_name=meta.get("quote_name") or meta.get("quoteName"),
            client_name=meta.get("client_name") or meta.get("clientName"),
            client_email=meta.get("client_email") or meta.get("clientEmail"),
            client_phone=meta.get("client_phone") or meta.get("clientPhone"),
        )
    if _is_finalize(raw):
        return Finalize()
    return Unclear(original_input=raw)


async def _parse_clarify(
    raw: str,
    ctx: ConversationContext,
    collaborators: Collaborators,
    settings: UserSettings,
) -> Event:
    retry: Optional[Event] = None
    # Silent retry: read the input as if we were still in the stamped state
    if can_retry_previous_state(ctx):
        retry = await parse_event(ctx.previous_state, raw, ctx, collaborators, settings)
        if not isinstance(retry, Unclear):
            logger.info("Clarify retry succeeded as %s", retry.type.value)
            return retry

    if ctx.clarify_attempts >= cfg.CLARIFY_ESCALATION_THRESHOLD:
        return await _escalate(raw, ctx, collaborators)

    if isinstance(retry, Unclear):
        return retry
    return Unclear(original_input=raw)


async def _escalate(raw: str, ctx: ConversationContext, collaborators: Collaborators) -> Unclear:
    if not cfg.ENABLE_LLM_INTERPRETATION:
        return Unclear(original_input=raw, escalated=True)

    question = ctx.current_question
    context: Dict[str, Any] = {
        "current_state": ctx.previous_state.value if ctx.previous_state else None,
        "previous_question": question.question if question else None,
        "scoping_answers": dict(ctx.scoping_answers),
        "job_type": ctx.tradecraft_job_type,
    }
    logger.info("Escalating clarification to trade agent (attempt %d)", ctx.clarify_attempts)
    interp = await soft_call(
        collaborators.interpreter.clarify_input(raw, context),
        Interpretation(success=False),
        what="Clarification",
        timeout_s=collaborators.timeout_s,
    )
    if interp.success and interp.message:
        return Unclear(
            original_input=raw,
            agent_message=interp.message,
            quick_replies=tuple(interp.quick_replies),
            clarified_intent=interp.clarified_intent,
            escalated=True,
        )
    return Unclear(original_input=raw, escalated=True)
