import asyncio

import drew.config as cfg
from drew.actions import load_tradecraft
from drew.collaborators import ChecklistAdjustment
from drew.enrichment import adjust_checklist, apply_checklist_adjustments, resolve_products
from drew.events import SelectJob
from drew.state import ChecklistItem, initial_context

from conftest import BREAKER, LOAD_CENTER, PANEL, DummyAdjuster, DummyCatalog, panel_upgrade_doc

BASE = (
    ChecklistItem(category="wire", name="6/3 NM-B", search_terms=("6/3 romex",), default_qty=30, unit="ft"),
    ChecklistItem(category="breaker", name="50A breaker", search_terms=("50 amp breaker",)),
)


def _answered_ctx():
    ctx = load_tradecraft(initial_context(), SelectJob(job_type="panel_upgrade", tradecraft=panel_upgrade_doc()))
    return ctx.evolve(scoping_answers={"current_service": "100A"})


def test_apply_adjustments_add_remove_modify():
    result = apply_checklist_adjustments(
        BASE,
        [
            ChecklistAdjustment(action="modify", category="wire", default_qty=80, reason="Long run"),
            ChecklistAdjustment(action="remove", category="breaker", reason="Customer supplies"),
            ChecklistAdjustment(
                action="add",
                category="weatherproof_box",
                name="Weatherproof box",
                reason="Exterior mount",
                search_terms=("weatherproof box",),
            ),
            # Already present: ignored
            ChecklistAdjustment(action="add", category="wire", name="Other wire"),
        ],
    )
    assert [i.category for i in result] == ["wire", "weatherproof_box"]
    assert result[0].default_qty == 80
    assert result[0].notes == "Long run"
    assert result[1].required is False
    assert result[1].notes == "Exterior mount"


def test_add_without_search_terms_searches_by_name():
    result = apply_checklist_adjustments(BASE, [ChecklistAdjustment(action="add", category="gfci", name="GFCI outlet")])
    assert result[-1].search_terms == ("GFCI outlet",)
    assert result[-1].default_qty == 1


def test_adjust_checklist_applies_agent_suggestions(collaborators):
    adjuster = DummyAdjuster([ChecklistAdjustment(action="remove", category="breakers")])
    ctx = asyncio.run(adjust_checklist(_answered_ctx(), collaborators(adjuster=adjuster)))
    assert [i.category for i in ctx.pending_checklist] == ["panel"]
    answers, checklist, job_type = adjuster.calls[0]
    assert job_type == "panel_upgrade"
    assert len(checklist) == 2


def test_adjust_checklist_failure_keeps_base(collaborators):
    adjuster = DummyAdjuster(error=RuntimeError("boom"))
    before = _answered_ctx()
    after = asyncio.run(adjust_checklist(before, collaborators(adjuster=adjuster)))
    assert after.pending_checklist == before.pending_checklist


def test_adjust_checklist_timeout_keeps_base(collaborators):
    adjuster = DummyAdjuster([ChecklistAdjustment(action="remove", category="panel")], delay=0.5)
    before = _answered_ctx()
    after = asyncio.run(adjust_checklist(before, collaborators(adjuster=adjuster, timeout_s=0.05)))
    assert after.pending_checklist == before.pending_checklist


def test_adjust_checklist_can_be_disabled(collaborators, monkeypatch):
    monkeypatch.setattr(cfg, "ENABLE_CHECKLIST_ADJUSTMENT", False)
    adjuster = DummyAdjuster([ChecklistAdjustment(action="remove", category="panel")])
    asyncio.run(adjust_checklist(_answered_ctx(), collaborators(adjuster=adjuster)))
    assert adjuster.calls == []


def test_resolve_products_merge_is_deterministic(collaborators):
    # The slower first item must still come first
    catalog = DummyCatalog(
        {
            "200 amp panel": [PANEL],
            "main breaker load center": [LOAD_CENTER],
            "20 amp breaker": [BREAKER, PANEL],
        },
        delays={"200 amp panel": 0.05},
    )
    ctx = _answered_ctx().evolve(confirmed_categories=("panel", "breakers"))
    out = asyncio.run(resolve_products(ctx, collaborators(catalog=catalog)))
    assert [p.id for p in out.pending_products] == ["SKU-1", "SKU-3", "SKU-2"]
    assert out.pending_checklist is None


def test_resolve_products_only_searches_confirmed_categories(collaborators):
    catalog = DummyCatalog({"20 amp breaker": [BREAKER]})
    ctx = _answered_ctx().evolve(confirmed_categories=("breakers",))
    out = asyncio.run(resolve_products(ctx, collaborators(catalog=catalog)))
    assert [term for term, _, _ in catalog.calls] == ["20 amp breaker"]
    assert [p.id for p in out.pending_products] == ["SKU-2"]


def test_failing_lookup_contributes_nothing(collaborators):
    catalog = DummyCatalog(
        {
            "200 amp panel": RuntimeError("catalog down"),
            "main breaker load center": [LOAD_CENTER],
            "20 amp breaker": [BREAKER],
        }
    )
    ctx = _answered_ctx().evolve(confirmed_categories=("panel", "breakers"))
    out = asyncio.run(resolve_products(ctx, collaborators(catalog=catalog)))
    assert [p.id for p in out.pending_products] == ["SKU-3", "SKU-2"]


def test_resolve_products_without_confirmation_clears_checklist(collaborators):
    out = asyncio.run(resolve_products(_answered_ctx(), collaborators()))
    assert out.pending_products is None
    assert out.pending_checklist is None
