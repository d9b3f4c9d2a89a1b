import asyncio
import json

from drew.catalog import CatalogSearch, doc_to_product
from drew.collaborators import Interpretation
from drew.state import ChecklistItem
from drew.trade_agent import TradeAgent
from drew.tradecraft import TradecraftLibrary, load_tradecraft_file


class DummyResp:
    def __init__(self, content: str):
        self.content = content


class DummyLLM:
    """Async chat stub that replays a canned reply and records the messages it got."""

    def __init__(self, reply: str):
        self.reply = reply
        self.messages = []

    async def ainvoke(self, messages):
        self.messages.append(messages)
        return DummyResp(self.reply)


class DummyDoc:
    def __init__(self, page_content: str, metadata: dict | None = None):
        self.page_content = page_content
        self.metadata = metadata or {}


class DummyVectorStore:
    def __init__(self, docs):
        self.docs = docs
        self.calls = []

    def similarity_search(self, query, k=4, filter=None):
        self.calls.append((query, k, filter))
        return self.docs[:k]


# ---------------- trade agent ----------------


def test_interpret_job_parses_json_reply():
    llm = DummyLLM('{"job_type": "ev_charger", "confidence": "high", "message": "EV charger, got it."}')
    agent = TradeAgent(llm=llm)
    interp = asyncio.run(agent.interpret_job("tesla thing in the garage", ["panel_upgrade", "ev_charger"]))
    assert interp == Interpretation(success=True, job_type="ev_charger", confidence="high", message="EV charger, got it.")
    system, human = llm.messages[0]
    assert "Master Electrician" in system.content
    assert "- ev_charger" in human.content


def test_interpret_job_ignores_unknown_job_types():
    llm = DummyLLM('{"job_type": "pool_heater", "confidence": "high", "message": "Pool heater."}')
    interp = asyncio.run(TradeAgent(llm=llm).interpret_job("pool", ["panel_upgrade"]))
    assert interp.job_type is None
    assert interp.message == "Pool heater."


def test_non_json_reply_becomes_low_confidence_message():
    llm = DummyLLM("Could you tell me a bit more about the job?")
    interp = asyncio.run(TradeAgent(llm=llm).clarify_input("eh", {"job_type": "water_heater"}))
    assert interp.success is True
    assert interp.confidence == "low"
    assert interp.message == "Could you tell me a bit more about the job?"
    assert "Master Plumber" in llm.messages[0][0].content


def test_adjust_checklist_filters_malformed_adjustments():
    reply = {
        "adjustments": [
            {"action": "modify", "category": "wire", "defaultQty": "75", "reason": "Long run"},
            {"action": "explode", "category": "wire"},
            {"action": "add", "reason": "no category"},
            {"action": "add", "category": "wp_box", "name": "Weatherproof box", "searchTerms": ["wp box"]},
        ],
        "message": "Upsized wire",
    }
    llm = DummyLLM(json.dumps(reply))
    checklist = [ChecklistItem(category="wire", name="6/3 NM-B", default_qty=30, unit="ft")]
    out = asyncio.run(TradeAgent(llm=llm).adjust_checklist({"panel_distance": "50-100 ft"}, checklist, "ev_charger"))
    assert [(a.action, a.category) for a in out] == [("modify", "wire"), ("add", "wp_box")]
    assert out[0].default_qty == 75.0
    assert out[1].search_terms == ("wp box",)
    assert "- 6/3 NM-B (wire): qty 30 ft" in llm.messages[0][1].content


# ---------------- tradecraft ----------------


def _write_docs(tmp_path, docs):
    path = tmp_path / "tradecraft.json"
    path.write_text(json.dumps({"docs": docs}), encoding="utf-8")
    return str(path)


def test_library_reads_active_documents(tmp_path):
    path = _write_docs(
        tmp_path,
        [
            {
                "job_type": "ceiling_fan",
                "title": "Ceiling Fan Installation",
                "scoping_questions": [
                    {"id": "box_rated", "question": "Is the box fan-rated?", "quickReplies": ["Yes", "No"]}
                ],
                "materials_checklist": {
                    "items": [{"category": "fan_box", "name": "Fan box", "searchTerms": ["fan box"], "defaultQty": 1}]
                },
            },
            {"job_type": "hot_tub", "title": "Hot Tub", "is_active": False},
        ],
    )
    lib = TradecraftLibrary(path)
    doc = asyncio.run(lib.get("ceiling_fan"))
    assert doc.title == "Ceiling Fan Installation"
    assert doc.scoping_questions[0].quick_replies == ("Yes", "No")
    assert doc.materials_checklist[0].search_terms == ("fan box",)
    assert asyncio.run(lib.get("hot_tub")) is None


def test_missing_tradecraft_file_is_empty(tmp_path):
    assert load_tradecraft_file(str(tmp_path / "nope.json")) == {}


def test_bundled_tradecraft_loads():
    docs = load_tradecraft_file(TradecraftLibrary().path)
    assert "panel_upgrade" in docs
    assert docs["smoke_detectors"].scoping_questions == ()
    assert docs["recessed_lighting"].materials_checklist == ()


# ---------------- catalog ----------------


def test_doc_to_product():
    doc = DummyDoc("id: SKU-9\nname: 50A Breaker\nprice: $18.50\nunit: ea", {"category": "electrical"})
    p = doc_to_product(doc)
    assert (p.id, p.name, p.price, p.unit) == ("SKU-9", "50A Breaker", 18.5, "ea")
    assert doc_to_product(DummyDoc("name: no id here")) is None


def test_catalog_search_filters_by_category():
    store = DummyVectorStore([DummyDoc("id: A\nname: Panel\nprice: 100"), DummyDoc("id: B\nname: Box\nprice: 5")])
    catalog = CatalogSearch(vectordb=store)
    found = asyncio.run(catalog.search("200 amp panel", "electrical", 1))
    assert [p.id for p in found] == ["A"]
    assert store.calls == [("200 amp panel", 1, {"category": "electrical"})]


def test_catalog_without_index_finds_nothing(tmp_path):
    catalog = CatalogSearch(index_dir=str(tmp_path / "missing"))
    assert asyncio.run(catalog.search("anything")) == []
