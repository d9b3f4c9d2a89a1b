"""
Trade agent: the LLM-backed interpreter and checklist adjuster.

One JSON-only call per task, with a system prompt chosen by the job's trade:

- interpret_job(text, job_types)        "sub-panel in my garage" -> panel_upgrade
- clarify_input(text, context)          make sense of input the parser rejected
- adjust_checklist(answers, checklist)  tailor materials to the scoping answers

Failures are not handled here; the engine wraps every call in ``soft_call``.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

import drew.config as cfg
import drew.prompts as prompts
from drew.collaborators import ChecklistAdjustment, Interpretation
from drew.intent_helpers import _coerce_number, _ensure_json, trade_for_job
from drew.state import ChecklistItem

logger = logging.getLogger(__name__)


def _openai_kwargs() -> Dict[str, Any]:
    kw: Dict[str, Any] = {}
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if api_key:
        kw["api_key"] = api_key
    base = os.getenv("OPENAI_BASE_URL", "").strip()
    if base:
        kw["base_url"] = base
    return kw


def _str_list(val: Any) -> tuple:
    if not isinstance(val, list):
        return ()
    return tuple(str(v) for v in val if v)


class TradeAgent:
    """Implements ``JobInterpreter`` and ``ChecklistAdjuster`` on top of ChatOpenAI."""

    def __init__(self, llm: Optional[Any] = None, model: Optional[str] = None) -> None:
        self._llm = llm
        self._model = model or cfg.LLM_MODEL

    @property
    def llm(self):
        # Built on first use so importing the server never needs an API key
        if self._llm is None:
            self._llm = ChatOpenAI(
                model=self._model,
                temperature=cfg.LLM_TEMPERATURE,
                max_tokens=cfg.LLM_MAX_TOKENS,
                **_openai_kwargs(),
            )
        return self._llm

    async def _ask(self, trade: Optional[str], task: str, user_prompt: str) -> str:
        logger.info("Calling %s trade agent for %s", trade or "electrical", task)
        resp = await self.llm.ainvoke(
            [
                SystemMessage(content=prompts.system_prompt_for(trade)),
                HumanMessage(content=user_prompt),
            ]
        )
        return resp.content if hasattr(resp, "content") else str(resp)

    @staticmethod
    def _interpretation(raw: str) -> Interpretation:
        obj = _ensure_json(raw)
        if not obj:
            # Not JSON: still usable as a message to the user
            text = (raw or "").strip()
            if not text:
                return Interpretation(success=False)
            return Interpretation(success=True, message=text[:200], confidence="low")
        return Interpretation(
            success=True,
            job_type=obj.get("job_type") or obj.get("jobType") or None,
            confidence=obj.get("confidence"),
            message=obj.get("message"),
            quick_replies=_str_list(obj.get("quick_replies") or obj.get("quickReplies")),
            clarified_intent=obj.get("clarified_intent") or obj.get("clarifiedIntent"),
            suggested_action=obj.get("suggested_action") or obj.get("suggestedAction"),
        )

    async def interpret_job(self, text: str, job_types: Sequence[str]) -> Interpretation:
        raw = await self._ask("electrical", "interpret_job", prompts.interpret_job_prompt(text, job_types))
        interp = self._interpretation(raw)
        if interp.job_type and interp.job_type not in job_types:
            logger.info("Trade agent suggested unknown job type %r; ignoring", interp.job_type)
            return Interpretation(
                success=interp.success,
                confidence="low",
                message=interp.message,
                quick_replies=interp.quick_replies,
            )
        return interp

    async def clarify_input(self, text: str, context: Dict[str, Any]) -> Interpretation:
        trade = trade_for_job(context.get("job_type"))
        raw = await self._ask(trade, "clarify_input", prompts.clarify_input_prompt(text, context))
        return self._interpretation(raw)

    async def adjust_checklist(
        self,
        scoping_answers: Dict[str, str],
        checklist: Sequence[ChecklistItem],
        job_type: Optional[str],
    ) -> List[ChecklistAdjustment]:
        raw = await self._ask(
            trade_for_job(job_type),
            "adjust_checklist",
            prompts.adjust_checklist_prompt(scoping_answers, checklist, job_type),
        )
        obj = _ensure_json(raw)
        out: List[ChecklistAdjustment] = []
        for adj in obj.get("adjustments") or []:
            if not isinstance(adj, dict):
                continue
            action = str(adj.get("action") or "").lower()
            category = adj.get("category")
            if action not in {"add", "remove", "modify"} or not category:
                continue
            qty = adj.get("default_qty", adj.get("defaultQty"))
            out.append(
                ChecklistAdjustment(
                    action=action,
                    category=str(category),
                    name=adj.get("name"),
                    reason=str(adj.get("reason") or ""),
                    search_terms=_str_list(adj.get("search_terms") or adj.get("searchTerms")),
                    default_qty=_coerce_number(qty) if qty is not None else None,
                    unit=adj.get("unit"),
                )
            )
        return out
