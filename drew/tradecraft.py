"""Tradecraft knowledge base: one document per job type, read from a JSON file."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import Dict, Optional

import drew.config as cfg
from drew.state import TradecraftDoc, tradecraft_from_dict

logger = logging.getLogger(__name__)


def load_tradecraft_file(path: str) -> Dict[str, TradecraftDoc]:
    """Active documents keyed by job type. A missing file is an empty library."""
    if not path or not os.path.isfile(path):
        logger.warning("Tradecraft file not found: %s", path)
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    rows = data.get("docs", []) if isinstance(data, dict) else data
    docs: Dict[str, TradecraftDoc] = {}
    for row in rows or []:
        if not isinstance(row, dict) or not row.get("job_type"):
            continue
        if row.get("is_active", True) is False:
            continue
        docs[row["job_type"]] = tradecraft_from_dict(row)
    logger.info("Loaded %d tradecraft documents from %s", len(docs), path)
    return docs


class TradecraftLibrary:
    """``TradecraftLookup`` over ``TRADECRAFT_PATH``; the file is read once, off the event loop."""

    def __init__(self, path: Optional[str] = None) -> None:
        self.path = path or cfg.TRADECRAFT_PATH
        self._docs: Optional[Dict[str, TradecraftDoc]] = None

    async def _ensure_loaded(self) -> Dict[str, TradecraftDoc]:
        if self._docs is None:
            self._docs = await asyncio.to_thread(load_tradecraft_file, self.path)
        return self._docs

    async def get(self, job_type: str) -> Optional[TradecraftDoc]:
        docs = await self._ensure_loaded()
        return docs.get(job_type)
