from __future__ import annotations

import logging
import os
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from dotenv import load_dotenv, find_dotenv

import drew.config as cfg
from drew.catalog import CatalogSearch
from drew.collaborators import Collaborators
from drew.interpreter import dispatch
from drew.logging import json_logger_middleware
from drew.state import (
    INITIAL_STATE,
    TERMINAL_STATE,
    ConversationContext,
    ConversationState,
    UserSettings,
    initial_context,
)
from drew.trade_agent import TradeAgent
from drew.tradecraft import TradecraftLibrary

from api.models import DrewReply, DrewRequest, ErrorEnvelope

# Load environment (.env optional)
load_dotenv(find_dotenv())

logger = logging.getLogger(__name__)

APP_TITLE = os.getenv("APP_TITLE", "Drew Quote Assistant API")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")

SNAG_MESSAGE = "Sorry, I hit a snag. Let's try that again."

app = FastAPI(title=APP_TITLE, version=APP_VERSION)

# CORS (wide-open by default; tighten in prod)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.middleware("http")(json_logger_middleware())


@lru_cache
def get_settings() -> cfg.Settings:
    settings = cfg.Settings()
    if settings.TRACE_LOGGING:
        logging.getLogger("drew").setLevel(logging.DEBUG)
    return settings


@lru_cache
def get_collaborators() -> Collaborators:
    agent = TradeAgent()
    return Collaborators(
        tradecraft=TradecraftLibrary(),
        interpreter=agent,
        adjuster=agent,
        catalog=CatalogSearch(),
    )


# ------------ Legacy payloads ------------

# Flat camelCase state objects sent by older app builds
_LEGACY_KEYS = {
    "quoteItems": "quote_items",
    "quoteName": "quote_name",
    "clientName": "client_name",
    "laborHours": "labor_hours",
    "laborRate": "labor_rate",
    "markupPercent": "markup_percent",
    "scopingQuestions": "scoping_questions",
    "currentQuestionIndex": "current_question_index",
    "scopingAnswers": "scoping_answers",
    "pendingChecklist": "pending_checklist",
    "messages": "messages",
}


def _state_tag(raw: Optional[str]) -> ConversationState:
    try:
        return ConversationState(raw) if raw else INITIAL_STATE
    except ValueError:
        logger.warning("Unknown conversation state %r; starting from greeting", raw)
        return INITIAL_STATE


def migrate_state(
    state: Any, context: Optional[Dict[str, Any]]
) -> Tuple[ConversationState, ConversationContext]:
    """Accept both the current ``state``/``context`` pair and legacy state objects."""
    if not isinstance(state, dict):
        if not state:
            return INITIAL_STATE, ConversationContext.from_dict(context)
        return _state_tag(state), ConversationContext.from_dict(context)

    if state.get("phase") and isinstance(state.get("context"), dict):
        return _state_tag(state["phase"]), ConversationContext.from_dict(state["context"])

    data = {snake: state[camel] for camel, snake in _LEGACY_KEYS.items() if state.get(camel) is not None}
    ctx = ConversationContext.from_dict(data)
    if state.get("phase"):
        tag = _state_tag(state["phase"])
    elif state.get("isComplete"):
        tag = TERMINAL_STATE
    elif state.get("quoteItems"):
        # Has items, so it was somewhere after product selection
        if state.get("markupPercent") is not None:
            tag = ConversationState.REVIEW
        elif state.get("laborHours") is not None:
            tag = ConversationState.MARKUP
        else:
            tag = ConversationState.LABOR
    else:
        tag = INITIAL_STATE
    return tag, ctx


# ------------ Routes ------------


@app.get("/health")
def health() -> dict:
    return {"ok": True, "service": APP_TITLE, "version": APP_VERSION}


@app.post("/drew", response_model=DrewReply)
async def drew(
    payload: DrewRequest,
    request: Request,
    collaborators: Collaborators = Depends(get_collaborators),
    settings: cfg.Settings = Depends(get_settings),
):
    try:
        state, ctx = migrate_state(payload.state, payload.context)
        request.state.drew_state = state.value
        user_settings = UserSettings(
            default_labor_rate=(
                payload.settings.default_labor_rate
                if payload.settings and payload.settings.default_labor_rate is not None
                else settings.DEFAULT_LABOR_RATE
            ),
            default_markup_percent=(
                payload.settings.default_markup_percent
                if payload.settings and payload.settings.default_markup_percent is not None
                else settings.DEFAULT_MARKUP_PERCENT
            ),
        )
        resp = await dispatch(state, payload.message, ctx, user_settings, collaborators)
    except Exception as e:
        # Return 200 so the client can show the message and offer a restart
        logger.exception("Dispatch failed")
        return DrewReply(
            state=INITIAL_STATE.value,
            context=initial_context().to_dict(),
            message=SNAG_MESSAGE,
            quick_replies=["Start over"],
            error=str(e) or e.__class__.__name__,
        )

    request.state.drew_event = resp.event
    request.state.drew_next_state = resp.state.value
    request.state.clarify_attempts = resp.context.clarify_attempts
    return DrewReply(
        state=resp.state.value,
        context=resp.context.to_dict(),
        message=resp.message,
        quick_replies=list(resp.quick_replies),
        display=resp.display,
        is_complete=resp.is_complete,
        trace=list(resp.trace) if cfg.RETURN_DEBUG_TRACE else None,
    )


@app.get("/")
def root():
    return {"message": "Drew Quote Assistant API. See /health, POST /drew"}


# ------------ Exception Handlers ------------


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    env = ErrorEnvelope(
        code=str(exc.status_code),
        message=str(exc.detail or "HTTP error"),
        details={"path": str(request.url)},
    )
    return JSONResponse(status_code=exc.status_code, content=env.model_dump())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    env = ErrorEnvelope(
        code="internal_error",
        message="Unexpected server error",
        details={"path": str(request.url)},
    )
    return JSONResponse(status_code=500, content=env.model_dump())
