from drew.actions import add_products, enter_clarify, load_tradecraft, merge_quote_items, record_scoping_answer, reset
from drew.events import AddProducts, AnswerScoping, SelectJob, Unclear
from drew.guards import (
    can_retry_previous_state,
    has_more_scoping_questions,
    no_checklist,
    no_scoping_questions,
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

from conftest import panel_upgrade_doc


def _scoping_ctx():
    return load_tradecraft(initial_context(), SelectJob(job_type="panel_upgrade", tradecraft=panel_upgrade_doc()))


def test_load_tradecraft_seeds_scoping_and_checklist():
    ctx = _scoping_ctx()
    assert ctx.tradecraft_job_type == "panel_upgrade"
    assert len(ctx.scoping_questions) == 2
    assert ctx.current_question_index == 0
    assert [i.category for i in ctx.pending_checklist] == ["panel", "breakers"]
    assert ctx.pending_products is None


def test_load_tradecraft_without_document():
    ctx = load_tradecraft(initial_context(), SelectJob(job_type="generator"))
    assert ctx.tradecraft is None
    assert ctx.tradecraft_job_type == "generator"
    assert no_scoping_questions(ctx)
    assert no_checklist(ctx)


def test_scoping_guards_track_the_question_being_answered():
    ctx = _scoping_ctx()
    assert has_more_scoping_questions(ctx)
    ctx = record_scoping_answer(ctx, AnswerScoping(question_id="current_service", answer="100A"))
    assert ctx.current_question_index == 1
    assert not has_more_scoping_questions(ctx)
    assert not no_scoping_questions(ctx)
    ctx = record_scoping_answer(ctx, AnswerScoping(question_id="new_service", answer="200A"))
    assert ctx.current_question_index == 2
    assert no_scoping_questions(ctx)
    assert ctx.scoping_answers == {"current_service": "100A", "new_service": "200A"}


def test_record_answer_never_overruns_question_count():
    ctx = _scoping_ctx().evolve(current_question_index=2)
    ctx = record_scoping_answer(ctx, AnswerScoping(question_id="extra", answer="x"))
    assert ctx.current_question_index == 2


def test_actions_do_not_mutate_their_input():
    before = _scoping_ctx()
    after = record_scoping_answer(before, AnswerScoping(question_id="current_service", answer="100A"))
    assert before.scoping_answers == {}
    assert before.current_question_index == 0
    assert after is not before


def test_merge_replaces_quantity_instead_of_summing():
    existing = [QuoteItem(product_id="A", name="Panel", unit_price=100.0, qty=1)]
    incoming = [
        QuoteItem(product_id="A", name="Panel", unit_price=100.0, qty=3),
        QuoteItem(product_id="B", name="Breaker", unit_price=5.0, qty=10),
    ]
    merged = merge_quote_items(existing, incoming)
    assert [(i.product_id, i.qty) for i in merged] == [("A", 3), ("B", 10)]


def test_add_products_skips_zero_quantities_and_clears_pending():
    ctx = initial_context()
    event = AddProducts(
        products=(
            ProductSelection(id="A", name="Panel", price=100.0, qty=1),
            ProductSelection(id="B", name="Breaker", price=5.0, qty=0),
        )
    )
    ctx = add_products(ctx, event)
    assert [i.product_id for i in ctx.quote_items] == ["A"]
    assert ctx.pending_products is None


def test_enter_clarify_stamps_state_and_counts():
    ctx = enter_clarify(initial_context(), Unclear(), ConversationState.LABOR)
    assert ctx.previous_state == ConversationState.LABOR
    assert ctx.clarify_attempts == 1
    assert can_retry_previous_state(ctx)
    ctx = enter_clarify(ctx, Unclear(), ConversationState.LABOR)
    assert ctx.clarify_attempts == 2


def test_cannot_retry_from_clarify_itself():
    ctx = ConversationContext(previous_state=ConversationState.CLARIFY)
    assert not can_retry_previous_state(ctx)
    assert not can_retry_previous_state(initial_context())


def test_reset_returns_a_fresh_context():
    ctx = _scoping_ctx().evolve(labor_hours=4, clarify_attempts=3)
    assert reset(ctx, Unclear()) == initial_context()


def test_context_round_trips_through_json_dict():
    ctx = record_scoping_answer(_scoping_ctx(), AnswerScoping(question_id="current_service", answer="100A"))
    ctx = ctx.evolve(previous_state=ConversationState.SCOPING, clarify_attempts=1)
    assert ConversationContext.from_dict(ctx.to_dict()) == ctx


def test_zero_quantities_survive_a_round_trip():
    ctx = initial_context().evolve(
        pending_checklist=(ChecklistItem(category="wire", name="6/3 NM-B", default_qty=0),),
        pending_products=(Product(id="SKU-9", name="Conduit", price=4.0, suggested_qty=0),),
    )
    back = ConversationContext.from_dict(ctx.to_dict())
    assert back.pending_checklist[0].default_qty == 0
    assert back.pending_products[0].suggested_qty == 0


def test_missing_quantities_default_to_one():
    ctx = ConversationContext.from_dict(
        {"pending_checklist": [{"category": "wire"}], "pending_products": [{"id": "SKU-9", "suggestedQty": None}]}
    )
    assert ctx.pending_checklist[0].default_qty == 1
    assert ctx.pending_products[0].suggested_qty == 1
