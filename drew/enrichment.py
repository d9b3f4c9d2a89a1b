"""Async enrichment run between entering a state and checking its "always" guards.

Two states need fresh data before they can decide whether to skip themselves:

- checklist: the base checklist is tailored to the scoping answers by the trade
  agent, otherwise an emptied checklist would not be skipped.
- products: confirmed checklist categories are resolved into catalog products,
  otherwise "no products" could never be evaluated.

Both degrade softly: a failed adjustment keeps the base checklist, a failed
search contributes no products.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

import drew.config as cfg
from drew.actions import set_checklist, set_products
from drew.collaborators import ChecklistAdjustment, Collaborators, soft_call
from drew.guards import has_checklist, has_confirmed_categories, has_scoping_answers
from drew.intent_helpers import trade_for_job
from drew.state import ChecklistItem, ConversationContext, ConversationState, Product

logger = logging.getLogger(__name__)

Enricher = Callable[[ConversationContext, Collaborators], Awaitable[ConversationContext]]


def apply_checklist_adjustments(
    base: Sequence[ChecklistItem], adjustments: Sequence[ChecklistAdjustment]
) -> List[ChecklistItem]:
    """Apply add/remove/modify adjustments, keyed by category."""
    result = list(base)
    for adj in adjustments or []:
        if adj.action == "add":
            if any(item.category == adj.category for item in result):
                continue
            result.append(
                ChecklistItem(
                    category=adj.category,
                    name=adj.name or adj.category,
                    search_terms=tuple(adj.search_terms) or (adj.name or adj.category,),
                    default_qty=adj.default_qty or 1,
                    unit=adj.unit or "ea",
                    required=False,
                    notes=adj.reason or None,
                )
            )
        elif adj.action == "remove":
            result = [item for item in result if item.category != adj.category]
        elif adj.action == "modify":
            result = [
                replace(
                    item,
                    default_qty=adj.default_qty if adj.default_qty is not None else item.default_qty,
                    name=adj.name or item.name,
                    notes=adj.reason or item.notes,
                )
                if item.category == adj.category
                else item
                for item in result
            ]
        else:
            logger.warning("Ignoring unknown checklist adjustment %r", adj.action)
    return result


async def adjust_checklist(ctx: ConversationContext, collaborators: Collaborators) -> ConversationContext:
    if not (cfg.ENABLE_CHECKLIST_ADJUSTMENT and has_scoping_answers(ctx)):
        return ctx
    base = list(ctx.pending_checklist or ())
    logger.info("Adjusting checklist (%d items) from scoping answers", len(base))
    adjustments = await soft_call(
        collaborators.adjuster.adjust_checklist(
            dict(ctx.scoping_answers), base, ctx.tradecraft_job_type
        ),
        [],
        what="Checklist adjustment",
        timeout_s=collaborators.timeout_s,
    )
    if not adjustments:
        logger.info("No checklist adjustments needed")
        return ctx
    logger.info("Applying %d checklist adjustments", len(adjustments))
    return set_checklist(ctx, apply_checklist_adjustments(base, adjustments))


async def _search_item(
    item: ChecklistItem, category: Optional[str], collaborators: Collaborators
) -> List[Product]:
    found: List[Product] = []
    for term in item.search_terms[: cfg.SEARCH_TERMS_PER_ITEM]:
        results = await soft_call(
            collaborators.catalog.search(term, category, cfg.PRODUCT_RESULTS_PER_TERM),
            [],
            what=f"Product search for {term!r}",
            timeout_s=collaborators.timeout_s,
        )
        found.extend(replace(p, suggested_qty=item.default_qty) for p in results or [])
    return found


async def resolve_products(ctx: ConversationContext, collaborators: Collaborators) -> ConversationContext:
    """Consume the checklist and populate the pending product list."""
    if not (has_confirmed_categories(ctx) and has_checklist(ctx)):
        return set_products(ctx, [])

    confirmed = set(ctx.confirmed_categories or ())
    items = [i for i in ctx.pending_checklist or () if i.category in confirmed]
    category = trade_for_job(ctx.tradecraft_job_type)
    logger.info("Loading products for %d confirmed categories", len(items))

    # Lookups run concurrently; gather keeps checklist order, first-seen id wins
    per_item = await asyncio.gather(*(_search_item(i, category, collaborators) for i in items))
    products: Dict[str, Product] = {}
    for batch in per_item:
        for product in batch:
            products.setdefault(product.id, product)
    return set_products(ctx, list(products.values()))


ENRICHERS: Dict[ConversationState, Enricher] = {
    ConversationState.CHECKLIST: adjust_checklist,
    ConversationState.PRODUCTS: resolve_products,
}


async def enrich(
    state: ConversationState, ctx: ConversationContext, collaborators: Collaborators
) -> ConversationContext:
    enricher = ENRICHERS.get(state)
    if enricher is None:
        return ctx
    return await enricher(ctx, collaborators)
