from __future__ import annotations
from typing import Any, Dict, List, Optional, Union
from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class SettingsModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    default_labor_rate: Optional[float] = Field(
        None, validation_alias=AliasChoices("default_labor_rate", "defaultLaborRate")
    )
    default_markup_percent: Optional[float] = Field(
        None, validation_alias=AliasChoices("default_markup_percent", "defaultMarkupPercent")
    )


class DrewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message: str = Field(
        "",
        description="User text or UI pseudo-command; empty on the opening turn",
        validation_alias=AliasChoices("message", "userMessage"),
    )
    # A state tag, or a whole legacy state object ({"phase": ..., "quoteItems": ...})
    state: Optional[Union[str, Dict[str, Any]]] = None
    context: Optional[Dict[str, Any]] = Field(None, description="Context returned by the previous turn")
    settings: Optional[SettingsModel] = Field(
        None, validation_alias=AliasChoices("settings", "userSettings")
    )


class DrewReply(BaseModel):
    state: str
    context: Dict[str, Any]
    message: str
    quick_replies: List[str] = []
    display: Optional[Dict[str, Any]] = None
    is_complete: bool = False
    error: Optional[str] = None
    trace: Optional[List[str]] = None


class ErrorEnvelope(BaseModel):
    code: str
    message: str
    details: Optional[dict] = None
