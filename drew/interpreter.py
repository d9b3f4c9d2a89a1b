"""One user turn in, one reply out.

    parse -> select transition -> run actions -> (enrich -> always)* -> render

Enrichment for a newly entered state always lands in the context before that
state's automatic transitions are checked, so a step with nothing to offer is
skipped within the same turn. Rendering happens once, for the final state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import drew.config as cfg
from drew.actions import ACTIONS, STATEFUL_ACTIONS
from drew.collaborators import Collaborators
from drew.enrichment import enrich
from drew.events import Event, Unclear
from drew.machine import (
    MACHINE,
    MachineDefinitionError,
    Transition,
    check_guard,
    select_always,
    select_transition,
)
from drew.parser import parse_event
from drew.rendering import render
from drew.state import (
    ConversationContext,
    ConversationState,
    Message,
    UserSettings,
    initial_context,
)

logger = logging.getLogger(__name__)

S = ConversationState


@dataclass(frozen=True)
class DrewResponse:
    state: ConversationState
    context: ConversationContext
    message: str
    quick_replies: Tuple[str, ...] = ()
    display: Optional[Dict[str, Any]] = None
    is_complete: bool = False
    event: Optional[str] = None
    trace: Tuple[str, ...] = ()


_FALLBACK = Transition(S.CLARIFY, actions=("enter_clarify",))


def _run_actions(
    transition: Transition,
    ctx: ConversationContext,
    event: Event,
    from_state: ConversationState,
) -> ConversationContext:
    for name in transition.actions:
        action = ACTIONS.get(name)
        if action is None:
            raise MachineDefinitionError(f"Unknown action: {name}")
        if name in STATEFUL_ACTIONS:
            ctx = action(ctx, event, from_state)  # type: ignore[call-arg]
        else:
            ctx = action(ctx, event)
    return ctx


def _resolve_transition(
    state: ConversationState, event: Event, ctx: ConversationContext
) -> Tuple[Transition, ConversationState]:
    """Pick the transition for ``event`` and the state it is evaluated from.

    In clarify a recognised event is matched against the stamped state's table,
    so a successful retry behaves exactly as if clarify never happened.
    """
    definition = MACHINE[state]
    transition = select_transition(definition, event.type, ctx)
    if transition is not None:
        return transition, state

    if (
        definition.retry_guard is not None
        and not isinstance(event, Unclear)
        and check_guard(definition.retry_guard, ctx)
    ):
        retry_state = ctx.previous_state
        transition = select_transition(MACHINE[retry_state], event.type, ctx)
        if transition is not None:
            return transition, retry_state

    # Nothing declared for this event: ask for clarification. When already in
    # clarify, keep the original stamp.
    stamp = ctx.previous_state if state == S.CLARIFY and ctx.previous_state else state
    logger.info("No transition for %s in %s; falling back to clarify", event.type.value, state.value)
    return _FALLBACK, stamp


async def _settle(
    state: ConversationState,
    ctx: ConversationContext,
    event: Event,
    collaborators: Collaborators,
    trace: List[str],
) -> Tuple[ConversationState, ConversationContext]:
    """Enrich and follow automatic transitions until the state is stable."""
    current, context = state, ctx
    for _ in range(cfg.MAX_AUTO_TRANSITIONS):
        context = await enrich(current, context, collaborators)
        auto = select_always(MACHINE[current], context)
        if auto is None:
            return current, context
        trace.append(f"{current.value} -> {auto.target.value} (always)")
        context = _run_actions(auto, context, event, current)
        current = auto.target
    raise MachineDefinitionError(
        f"More than {cfg.MAX_AUTO_TRANSITIONS} automatic transitions from {state.value}"
    )


async def dispatch(
    state: ConversationState,
    text: str,
    ctx: Optional[ConversationContext],
    settings: Optional[UserSettings],
    collaborators: Collaborators,
) -> DrewResponse:
    """Handle exactly one user turn."""
    settings = (settings or UserSettings()).with_defaults()
    ctx = ctx if ctx is not None else initial_context()
    state = ConversationState(state)
    trace: List[str] = []

    try:
        event = await parse_event(state, text, ctx, collaborators, settings)
        trace.append(f"event {event.type.value}")

        transition, from_state = _resolve_transition(state, event, ctx)
        next_ctx = _run_actions(transition, ctx, event, from_state)
        next_state = transition.target
        trace.append(f"{state.value} -> {next_state.value}")

        if next_state != S.CLARIFY and (next_ctx.previous_state or next_ctx.clarify_attempts):
            next_ctx = next_ctx.evolve(previous_state=None, clarify_attempts=0)

        next_state, next_ctx = await _settle(next_state, next_ctx, event, collaborators, trace)
    except MachineDefinitionError:
        logger.error("Conversation machine misconfigured (state=%s)", state.value, exc_info=True)
        raise

    entry = render(next_state, next_ctx, event, settings)

    transcript = list(next_ctx.messages)
    if text:
        transcript.append(Message(role="user", content=text))
    transcript.append(Message(role="assistant", content=entry.message))
    next_ctx = next_ctx.evolve(messages=tuple(transcript))

    logger.info(
        "Dispatch %s --%s--> %s (clarify_attempts=%d)",
        state.value,
        event.type.value,
        next_state.value,
        next_ctx.clarify_attempts,
    )
    return DrewResponse(
        state=next_state,
        context=next_ctx,
        message=entry.message,
        quick_replies=tuple(entry.quick_replies),
        display=entry.display,
        is_complete=entry.is_complete,
        event=event.type.value,
        trace=tuple(trace),
    )
