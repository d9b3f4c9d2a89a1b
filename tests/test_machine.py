import pytest

from drew.events import EventType
from drew.machine import (
    MACHINE,
    MachineDefinitionError,
    StateDefinition,
    Transition,
    check_guard,
    select_transition,
    validate_machine,
)
from drew.state import ConversationState, initial_context

S = ConversationState


def test_every_state_is_defined():
    assert set(MACHINE) == set(ConversationState)
    validate_machine()


def test_every_state_can_be_reset():
    for state, definition in MACHINE.items():
        if state == S.GREETING:
            continue
        t = select_transition(definition, EventType.START_NEW, initial_context())
        assert t is not None, state
        assert "reset" in t.actions


def test_done_only_accepts_start_new():
    assert set(MACHINE[S.DONE].on) == {EventType.START_NEW}


def test_unknown_guard_is_rejected():
    broken = dict(MACHINE)
    broken[S.LABOR] = StateDefinition(on={EventType.SET_LABOR: Transition(S.MARKUP, guard="labor_is_cheap")})
    with pytest.raises(MachineDefinitionError):
        validate_machine(broken)


def test_unknown_action_is_rejected():
    broken = dict(MACHINE)
    broken[S.MARKUP] = StateDefinition(on={EventType.SET_MARKUP: Transition(S.REVIEW, actions=("apply_discount",))})
    with pytest.raises(MachineDefinitionError):
        validate_machine(broken)


def test_missing_state_is_rejected():
    broken = {k: v for k, v in MACHINE.items() if k != S.REVIEW}
    with pytest.raises(MachineDefinitionError):
        validate_machine(broken)


def test_unguarded_always_transition_is_rejected():
    broken = dict(MACHINE)
    broken[S.PRODUCTS] = StateDefinition(always=(Transition(S.LABOR),))
    with pytest.raises(MachineDefinitionError):
        validate_machine(broken)


def test_terminal_state_without_restart_is_rejected():
    broken = dict(MACHINE)
    broken[S.DONE] = StateDefinition()
    with pytest.raises(MachineDefinitionError):
        validate_machine(broken)


def test_check_guard_raises_on_unknown_name():
    with pytest.raises(MachineDefinitionError):
        check_guard("nope", initial_context())
    assert check_guard(None, initial_context()) is True


def test_first_passing_candidate_wins():
    ctx = initial_context()
    definition = StateDefinition(
        on={
            EventType.SET_LABOR: [
                Transition(S.REVIEW, guard="has_products"),
                Transition(S.MARKUP),
                Transition(S.DONE),
            ]
        }
    )
    assert select_transition(definition, EventType.SET_LABOR, ctx).target == S.MARKUP
    assert select_transition(definition, EventType.FINALIZE, ctx) is None
