"""Prompt text for the trade agent (system prompts per trade and task templates)."""

import json
from typing import Any, Dict, Optional, Sequence

from drew.state import ChecklistItem

_STYLE = """
Communication style:
- Brief and practical (1-2 sentences max)
- Speak like a fellow tradesperson
- Never say "Great question!" or be overly enthusiastic
- Be confident but not cocky

IMPORTANT: Respond with valid JSON only. No markdown, no explanation outside the JSON.
""".strip()

MASTER_ELECTRICIAN_PROMPT = f"""
You are a Master Electrician with 20+ years of residential and commercial experience.
You know the NEC code inside and out. You help contractors build accurate quotes.

Your expertise includes:
- Residential: Panel upgrades, EV chargers, lighting, outlets, ceiling fans
- Commercial: 3-phase, sub-panels, dedicated circuits
- Code: NEC requirements, permits, inspections
- Safety: Wire sizing, load calculations, grounding

{_STYLE}
""".strip()

MASTER_PLUMBER_PROMPT = f"""
You are a Master Plumber with 20+ years of residential and commercial experience.
You know the IPC code inside and out. You help contractors build accurate quotes.

Your expertise includes:
- Residential: Water heaters, fixtures, re-pipes, drains
- Commercial: Backflow, grease traps, medical gas
- Code: IPC requirements, permits, inspections
- Safety: Venting, pressure testing, gas lines

{_STYLE}
""".strip()

MASTER_BUILDER_PROMPT = f"""
You are a Master Builder/General Contractor with 20+ years of residential experience.
You handle framing, drywall, finishing, and general construction.

Your expertise includes:
- Framing: Walls, headers, structural repairs
- Drywall: Installation, finishing, repairs
- Finishing: Trim, doors, cabinets, flooring
- General: Decks, fences, siding, roofing basics

{_STYLE}
""".strip()

TRADE_PROMPTS: Dict[str, str] = {
    "electrical": MASTER_ELECTRICIAN_PROMPT,
    "plumbing": MASTER_PLUMBER_PROMPT,
    "general": MASTER_BUILDER_PROMPT,
}


def system_prompt_for(trade: Optional[str]) -> str:
    return TRADE_PROMPTS.get(trade or "", MASTER_ELECTRICIAN_PROMPT)


def interpret_job_prompt(text: str, job_types: Sequence[str]) -> str:
    listing = "\n".join(f"- {jt}" for jt in job_types)
    return f"""The user said: "{text}"

Your task: Identify what type of job they're describing.

Available job types:
{listing}

Respond with JSON:
{{
  "job_type": "the matching job type ID or null if unclear",
  "confidence": "high" | "medium" | "low",
  "message": "brief acknowledgment to the user (e.g., 'Panel upgrade, got it.')",
  "quick_replies": ["array of 2-4 follow-up options if confidence is low"]
}}

If you can't determine the job type, set job_type to null and ask a clarifying question in the message."""


def clarify_input_prompt(text: str, context: Dict[str, Any]) -> str:
    answers = json.dumps(context.get("scoping_answers") or {})
    return f"""The user said: "{text}"

Context:
- Current state: {context.get("current_state") or "unknown"}
- Previous question: "{context.get("previous_question") or "none"}"
- Previous answers: {answers}

Your task: Understand what the user meant and suggest how to proceed.

Respond with JSON:
{{
  "clarified_intent": "what you think they meant",
  "suggested_action": "continue" | "rephrase_question" | "skip_question" | "go_back",
  "message": "brief response to the user",
  "quick_replies": ["2-4 helpful options"]
}}"""


def adjust_checklist_prompt(
    scoping_answers: Dict[str, str],
    checklist: Sequence[ChecklistItem],
    job_type: Optional[str],
) -> str:
    answers = "\n".join(f"- {k}: {v}" for k, v in scoping_answers.items())
    items = "\n".join(
        f"- {i.name} ({i.category}): qty {i.default_qty:g} {i.unit}" for i in checklist
    )
    return f"""Job type: {job_type or "unknown"}

Scoping answers from the customer:
{answers}

Current materials checklist:
{items}

Your task: Based on the scoping answers, suggest adjustments to the checklist.

Common adjustments to consider:
- Long wire runs (50+ ft): Upsize wire gauge for voltage drop
- Panel full: Add sub-panel or tandem breakers
- Exterior/outdoor: Add weatherproof boxes, outdoor-rated materials
- Vaulted ceiling: Add angled mount adapters
- Multiple units: Increase quantities accordingly

Respond with JSON:
{{
  "adjustments": [
    {{
      "action": "add" | "remove" | "modify",
      "category": "category name for the item",
      "name": "item name (for add/modify)",
      "reason": "brief explanation",
      "search_terms": ["search", "terms"],
      "default_qty": 1,
      "unit": "ea"
    }}
  ],
  "message": "brief summary of changes (or 'No adjustments needed' if none)"
}}

Only suggest adjustments that are clearly needed based on the answers. If the standard checklist is fine, return an empty adjustments array."""
