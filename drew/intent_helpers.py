"""
Centralized intent detection helpers for the event parser.

Everything here is deterministic and cheap: regex tables, alias lookups and
numeric parsing. The parser only reaches for the trade agent when these fail.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple

# ---------------------------
# Regex patterns (robust)
# ---------------------------

_START_NEW_RX = re.compile(
    r"^(?:start (?:new|over|fresh)(?: quote)?|new quote)[.!]?$",
    re.IGNORECASE,
)

_ACK_RX = re.compile(
    r"^(?:yes(?: please)?|yeah|yep|ok(?:ay)?|sure|go ahead|confirm|looks good|sounds good|that(?:'s| is) fine|proceed)[.!]?$",
    re.IGNORECASE,
)

_SKIP_CHECKLIST_RX = re.compile(r"^(?:skip|no materials|none)$", re.IGNORECASE)

_SKIP_PRODUCTS_RX = re.compile(
    r"^(?:skip(?:\s+(?:products|these|materials))?|no products|none|done)$",
    re.IGNORECASE,
)

_ADD_ALL_RX = re.compile(r"^(?:add (?:all|everything|them)(?: please)?|all of them)$", re.IGNORECASE)

_FINALIZE_RX = re.compile(
    r"^(?:yes[,\s]*)?(?:finalize|finalise|confirm|done|looks good|save|ready)?$",
    re.IGNORECASE,
)

_HOURS_RX = re.compile(r"^(\d+(?:\.\d+)?)\s*(?:hours?|hrs?|h)?$")

_PERCENT_RX = re.compile(r"^(\d+(?:\.\d+)?)\s*%?(?:\s*percent)?$")

_ZERO_MARKUP_RX = re.compile(r"^(?:no markup|none|skip|0\s*%?)$")

# UI pseudo-commands: structured actions sent by the app instead of free text
CONFIRM_CHECKLIST_PREFIX = "CONFIRM_CHECKLIST:"
ADD_SELECTED_PREFIX = "ADD_SELECTED:"
FINALIZE_PREFIX = "FINALIZE:"

# ---------------------------
# Job type tables
# ---------------------------

# Exact phrases (after normalisation) mapped to job-type keys
JOB_TYPE_ALIASES: Dict[str, str] = {
    "panel upgrade": "panel_upgrade",
    "panel": "panel_upgrade",
    "200 amp": "panel_upgrade",
    "200a": "panel_upgrade",
    "ev charger": "ev_charger",
    "ev charger install": "ev_charger",
    "charger": "ev_charger",
    "recessed lighting": "recessed_lighting",
    "recessed lights": "recessed_lighting",
    "can lights": "recessed_lighting",
    "pot lights": "recessed_lighting",
    "outlet": "outlet_circuit",
    "new outlet": "outlet_circuit",
    "add outlet": "outlet_circuit",
    "circuit": "outlet_circuit",
    "ceiling fan": "ceiling_fan",
    "fan": "ceiling_fan",
    "smoke detector": "smoke_detectors",
    "smoke detectors": "smoke_detectors",
    "smoke alarm": "smoke_detectors",
    "co detector": "smoke_detectors",
    "range": "range_dryer_circuit",
    "dryer": "range_dryer_circuit",
    "dryer outlet": "range_dryer_circuit",
    "range outlet": "range_dryer_circuit",
    "240v": "range_dryer_circuit",
    "water heater": "water_heater",
}

# Keyword heuristics, checked in order (first hit wins)
JOB_TYPE_KEYWORDS: List[Tuple[str, Tuple[str, ...]]] = [
    ("panel_upgrade", ("panel", "sub-panel", "subpanel", "200 amp", "200a", "upgrade panel",
                       "service upgrade", "main panel", "breaker box", "fuse box")),
    ("ev_charger", ("ev charger", "electric vehicle", "tesla charger", "car charger",
                    "level 2 charger", "nema 14-50")),
    ("recessed_lighting", ("recessed", "can lights", "pot lights", "downlights", "ceiling lights")),
    ("outlet_circuit", ("outlet", "receptacle", "plug", "circuit", "dedicated circuit")),
    ("ceiling_fan", ("ceiling fan", "fan install", "fan installation")),
    ("generator", ("generator", "whole house generator", "backup power", "transfer switch")),
    ("hot_tub", ("hot tub", "spa", "jacuzzi", "240v outdoor")),
    ("smoke_detectors", ("smoke detector", "smoke alarm", "co detector", "carbon monoxide")),
    ("range_dryer_circuit", ("range", "dryer", "stove", "oven", "240v outlet", "240 volt",
                             "50 amp outlet", "30 amp outlet", "dryer outlet", "range outlet")),
    ("water_heater", ("water heater", "hot water tank", "tankless")),
]

# Trade each job type belongs to; doubles as the catalog category filter
JOB_TRADES: Dict[str, str] = {
    "panel_upgrade": "electrical",
    "ev_charger": "electrical",
    "recessed_lighting": "electrical",
    "outlet_circuit": "electrical",
    "ceiling_fan": "electrical",
    "generator": "electrical",
    "hot_tub": "electrical",
    "smoke_detectors": "electrical",
    "range_dryer_circuit": "electrical",
    "water_heater": "plumbing",
}

KNOWN_JOB_TYPES: List[str] = [job for job, _ in JOB_TYPE_KEYWORDS]

# ---------------------------
# Public helpers (stable API)
# ---------------------------


def _normalize(s: str) -> str:
    return re.sub(r"\s+", " ", (s or "").strip().lower())


def _is_start_new(q: str) -> bool:
    return bool(_START_NEW_RX.match(_normalize(q)))


def _is_acknowledgement(q: str) -> bool:
    return bool(_ACK_RX.match(_normalize(q)))


def _is_skip_checklist(q: str) -> bool:
    return bool(_SKIP_CHECKLIST_RX.match(_normalize(q)))


def _is_skip_products(q: str) -> bool:
    return bool(_SKIP_PRODUCTS_RX.match(_normalize(q)))


def _is_add_all(q: str) -> bool:
    return bool(_ADD_ALL_RX.match(_normalize(q)))


def _is_finalize(q: str) -> bool:
    s = _normalize(q)
    return bool(s) and bool(_FINALIZE_RX.match(s))


def trade_for_job(job_type: Optional[str]) -> Optional[str]:
    return JOB_TRADES.get(job_type or "")


def match_job_alias(text: str) -> Optional[str]:
    """Exact alias lookup (fastest, no AI)."""
    return JOB_TYPE_ALIASES.get(_normalize(text))


def quick_match_job_type(text: str) -> Optional[Tuple[str, str]]:
    """Keyword heuristic. Returns (job_type, confidence) or None.

    A keyword that is the whole input, or bounds it, is high confidence;
    a keyword buried inside a longer sentence is medium.
    """
    s = _normalize(text)
    if not s:
        return None
    for job_type, keywords in JOB_TYPE_KEYWORDS:
        for kw in keywords:
            if kw not in s:
                continue
            if s == kw or s.startswith(kw + " ") or s.endswith(" " + kw):
                return job_type, "high"
            return job_type, "medium"
    return None


def match_quick_reply(text: str, quick_replies: Sequence[str]) -> Optional[str]:
    """Map free text onto one of the offered quick replies.

    Exact (case-insensitive) match first, then prefix/containment either way.
    """
    s = _normalize(text)
    if not s:
        return None
    for reply in quick_replies:
        if _normalize(reply) == s:
            return reply
    for reply in quick_replies:
        r = _normalize(reply)
        if r.startswith(s) or re.search(rf"\b{re.escape(r)}\b", s):
            return reply
    return None


def parse_hours(text: str) -> Optional[float]:
    """Hours from "4", "4 hours", "6.5 hrs", "half day" or "full day"."""
    s = _normalize(text)
    m = _HOURS_RX.match(s)
    if m:
        return float(m.group(1))
    if "half day" in s:
        return 4.0
    if "full day" in s:
        return 8.0
    return None


def parse_percent(text: str) -> Optional[float]:
    """Markup percent from "20", "20%", "20 percent"; "no markup"/"none"/"skip" are 0."""
    s = _normalize(text)
    if _ZERO_MARKUP_RX.match(s):
        return 0.0
    m = _PERCENT_RX.match(s)
    if m:
        return float(m.group(1))
    return None


def parse_pseudo_command(text: str, prefix: str) -> Optional[Any]:
    """Decode ``PREFIX:<json>`` sent by the app. Returns None when absent or malformed."""
    raw = (text or "").strip()
    if not raw.startswith(prefix):
        return None
    try:
        return json.loads(raw[len(prefix):])
    except json.JSONDecodeError:
        return None


def _ensure_json(raw: str) -> dict:
    """Pull the first JSON object out of an LLM reply (tolerates prose around it)."""
    m = re.search(r"(\{.*\})", raw or "", re.DOTALL)
    if m:
        raw = m.group(1)
    try:
        obj = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {}
    return obj if isinstance(obj, dict) else {}


def _coerce_number(val) -> float:
    try:
        return float(val)
    except (ValueError, TypeError):
        return 0.0
