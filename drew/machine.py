"""Declarative definition of the quote conversation machine.

The table is data: state -> event tag -> transition (or an ordered list of
guarded candidates), plus the "always" transitions checked right after a state
is entered. Guards and actions are referenced by name and resolved through the
registries in ``drew.guards`` and ``drew.actions``.

Flow (happy path):

    greeting -> job_selection -> scoping* -> checklist -> products -> labor
             -> markup -> review -> done

Steps with nothing to show are skipped by their "always" transitions. Anything
the table does not cover falls back to ``clarify``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Mapping, Optional, Sequence, Tuple, Union

from drew.actions import ACTIONS
from drew.events import EventType
from drew.guards import GUARDS
from drew.state import INITIAL_STATE, TERMINAL_STATE, ConversationContext, ConversationState

S = ConversationState
E = EventType


class MachineDefinitionError(RuntimeError):
    """The transition table references something that does not exist."""


@dataclass(frozen=True)
class Transition:
    target: ConversationState
    guard: Optional[str] = None
    actions: Tuple[str, ...] = ()


@dataclass(frozen=True)
class StateDefinition:
    on: Mapping[EventType, Union[Transition, Sequence[Transition]]] = field(default_factory=dict)
    always: Tuple[Transition, ...] = ()
    # When set and passing, events are matched against the stamped previous state
    retry_guard: Optional[str] = None

    def candidates(self, event_type: EventType) -> Tuple[Transition, ...]:
        found = self.on.get(event_type)
        if found is None:
            return ()
        if isinstance(found, Transition):
            return (found,)
        return tuple(found)


_RESET = Transition(S.GREETING, actions=("reset",))
_CLARIFY = Transition(S.CLARIFY, actions=("enter_clarify",))

MACHINE: Dict[ConversationState, StateDefinition] = {
    S.GREETING: StateDefinition(
        on={
            E.START: Transition(S.JOB_SELECTION),
            E.START_NEW: Transition(S.JOB_SELECTION, actions=("reset",)),
        },
    ),
    S.JOB_SELECTION: StateDefinition(
        on={
            E.SELECT_JOB: Transition(S.SCOPING, actions=("load_tradecraft",)),
            E.UNCLEAR: _CLARIFY,
            E.START_NEW: _RESET,
        },
    ),
    S.SCOPING: StateDefinition(
        on={
            E.ANSWER_SCOPING: [
                Transition(
                    S.SCOPING,
                    guard="has_more_scoping_questions",
                    actions=("record_scoping_answer",),
                ),
                Transition(
                    S.CHECKLIST,
                    guard="no_more_scoping_questions",
                    actions=("record_scoping_answer",),
                ),
            ],
            E.UNCLEAR: _CLARIFY,
            E.START_NEW: _RESET,
        },
        always=(Transition(S.CHECKLIST, guard="no_scoping_questions"),),
    ),
    S.CHECKLIST: StateDefinition(
        on={
            E.CONFIRM_CHECKLIST: Transition(S.PRODUCTS, actions=("confirm_checklist",)),
            E.SKIP_CHECKLIST: Transition(S.LABOR, actions=("clear_checklist",)),
            E.UNCLEAR: _CLARIFY,
            E.START_NEW: _RESET,
        },
        always=(Transition(S.LABOR, guard="no_checklist"),),
    ),
    S.PRODUCTS: StateDefinition(
        on={
            E.ADD_PRODUCTS: Transition(S.LABOR, actions=("add_products",)),
            E.SKIP_PRODUCTS: Transition(S.LABOR, actions=("clear_products",)),
            E.UNCLEAR: _CLARIFY,
            E.START_NEW: _RESET,
        },
        always=(Transition(S.LABOR, guard="no_products"),),
    ),
    S.LABOR: StateDefinition(
        on={
            E.SET_LABOR: Transition(S.MARKUP, actions=("set_labor",)),
            E.UNCLEAR: _CLARIFY,
            E.START_NEW: _RESET,
        },
    ),
    S.MARKUP: StateDefinition(
        on={
            E.SET_MARKUP: Transition(S.REVIEW, actions=("set_markup",)),
            E.UNCLEAR: _CLARIFY,
            E.START_NEW: _RESET,
        },
    ),
    S.REVIEW: StateDefinition(
        on={
            E.FINALIZE: Transition(S.DONE, actions=("finalize_quote",)),
            E.UNCLEAR: _CLARIFY,
            E.START_NEW: _RESET,
        },
    ),
    S.DONE: StateDefinition(
        on={
            E.START_NEW: _RESET,
        },
    ),
    S.CLARIFY: StateDefinition(
        on={
            E.START_NEW: _RESET,
        },
        retry_guard="can_retry_previous_state",
    ),
}


def check_guard(name: Optional[str], ctx: ConversationContext) -> bool:
    if name is None:
        return True
    guard = GUARDS.get(name)
    if guard is None:
        raise MachineDefinitionError(f"Unknown guard: {name}")
    return guard(ctx)


def select_transition(
    definition: StateDefinition, event_type: EventType, ctx: ConversationContext
) -> Optional[Transition]:
    """First candidate whose guard passes (an unguarded candidate always passes)."""
    for transition in definition.candidates(event_type):
        if check_guard(transition.guard, ctx):
            return transition
    return None


def select_always(definition: StateDefinition, ctx: ConversationContext) -> Optional[Transition]:
    for transition in definition.always:
        if check_guard(transition.guard, ctx):
            return transition
    return None


def validate_machine(machine: Mapping[ConversationState, StateDefinition] = MACHINE) -> None:
    """Fail fast on a broken table: missing states, unknown guards/actions/targets."""
    missing = [s for s in ConversationState if s not in machine]
    if missing:
        raise MachineDefinitionError(f"States without a definition: {[s.value for s in missing]}")

    def _check(where: str, t: Transition) -> None:
        if t.target not in machine:
            raise MachineDefinitionError(f"{where}: unknown target {t.target!r}")
        if t.guard is not None and t.guard not in GUARDS:
            raise MachineDefinitionError(f"{where}: unknown guard {t.guard!r}")
        for name in t.actions:
            if name not in ACTIONS:
                raise MachineDefinitionError(f"{where}: unknown action {name!r}")

    for state, definition in machine.items():
        for event_type in definition.on:
            for t in definition.candidates(event_type):
                _check(f"{state.value}.{event_type.value}", t)
        for t in definition.always:
            _check(f"{state.value}.always", t)
            if t.guard is None:
                raise MachineDefinitionError(f"{state.value}.always: unguarded automatic transition")
        if definition.retry_guard is not None and definition.retry_guard not in GUARDS:
            raise MachineDefinitionError(f"{state.value}: unknown retry guard {definition.retry_guard!r}")

    terminal = machine[TERMINAL_STATE]
    if not any(t.target == INITIAL_STATE for t in terminal.candidates(EventType.START_NEW)):
        raise MachineDefinitionError(f"{TERMINAL_STATE.value}: no way back to {INITIAL_STATE.value}")


validate_machine()
