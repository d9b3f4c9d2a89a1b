"""
Product catalog search over a persisted FAISS index.

The index is produced by the catalog sync pipeline (not part of this
package). Each document's page_content holds 'key: value' lines, e.g.

    id: SKU-10482
    name: Square D 200A Main Breaker Load Center
    price: 189.00
    unit: ea

with the product's trade in ``metadata["category"]``. Without an index on disk
every search returns no products, which the engine treats as "nothing found".
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from typing import Any, Dict, List, Optional

from langchain_community.vectorstores import FAISS
from langchain_openai import OpenAIEmbeddings

import drew.config as cfg
from drew.intent_helpers import _coerce_number
from drew.state import Product

logger = logging.getLogger(__name__)


def _lines_to_kv(lines: List[str]) -> Dict[str, str]:
    """
    Convert a list of 'key: value' lines into a dict with lowercased keys.
    Lines without ':' are ignored. Later duplicates overwrite earlier ones.
    """
    out: Dict[str, str] = {}
    for line in lines:
        if not line or ":" not in line:
            continue
        key, val = line.split(":", 1)
        out[key.strip().lower()] = val.strip()
    return out


def _parse_doc_content(text: str) -> Dict[str, str]:
    return _lines_to_kv((text or "").splitlines())


def _price(val: Any) -> float:
    return _coerce_number(re.sub(r"[^\d.]", "", str(val or "")) or 0)


def doc_to_product(doc: Any) -> Optional[Product]:
    """Coerce a retrieved document into a Product; None when it has no id."""
    d = _parse_doc_content(getattr(doc, "page_content", "") or "")
    meta = getattr(doc, "metadata", {}) or {}
    pid = d.get("id") or meta.get("id")
    if not pid:
        return None
    return Product(
        id=str(pid),
        name=d.get("name") or meta.get("name") or str(pid),
        price=_price(d.get("price") or meta.get("price")),
        unit=d.get("unit") or meta.get("unit") or "ea",
    )


def _emb():
    kw: Dict[str, Any] = {"model": cfg.EMBEDDING_MODEL}
    api_key = os.getenv("OPENAI_API_KEY", "").strip()
    if api_key:
        kw["api_key"] = api_key
    base = os.getenv("OPENAI_BASE_URL", "").strip()
    if base:
        kw["base_url"] = base
    return OpenAIEmbeddings(**kw)


class CatalogSearch:
    """``ProductSearch`` backed by a FAISS vector store (loaded once, lazily)."""

    def __init__(self, index_dir: Optional[str] = None, vectordb: Optional[Any] = None) -> None:
        self.index_dir = index_dir or cfg.CATALOG_INDEX_DIR
        self._vectordb = vectordb
        self._missing = False

    def _load(self):
        if self._vectordb is not None or self._missing:
            return self._vectordb
        if not os.path.isdir(self.index_dir):
            logger.warning("Catalog index not found at %s; product search disabled", self.index_dir)
            self._missing = True
            return None
        self._vectordb = FAISS.load_local(
            self.index_dir,
            _emb(),
            allow_dangerous_deserialization=True,
        )
        return self._vectordb

    def _search_sync(self, term: str, category: Optional[str], limit: int) -> List[Product]:
        vectordb = self._load()
        if vectordb is None:
            return []
        kwargs: Dict[str, Any] = {"k": int(limit)}
        if category:
            kwargs["filter"] = {"category": category}
        docs = vectordb.similarity_search(term, **kwargs)
        products = [p for p in (doc_to_product(d) for d in docs or []) if p is not None]
        logger.debug("Catalog search %r -> %d products", term, len(products))
        return products

    async def search(self, term: str, category: Optional[str] = None, limit: int = 2) -> List[Product]:
        return await asyncio.to_thread(self._search_sync, term, category, limit)
