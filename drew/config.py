"""Central configuration for the Drew quote assistant.

A typed Settings object (Pydantic BaseSettings) is used for dependency injection
in the API. Module-level constants are read once at import and used by the
engine and the default collaborators.
"""

from dotenv import load_dotenv, find_dotenv
import os
from typing import Optional

from pydantic_settings import BaseSettings

# Load environment variables once for the whole app
load_dotenv(find_dotenv())


def _sanitize_openai_base() -> None:
    base = os.getenv("OPENAI_BASE_URL", "").strip()
    api_base = os.getenv("OPENAI_API_BASE", "").strip()
    use = base or api_base
    if not use:
        # Remove empty vars to let SDK default to https://api.openai.com/v1
        os.environ.pop("OPENAI_BASE_URL", None)
        os.environ.pop("OPENAI_API_BASE", None)
        return
    if not (use.startswith("http://") or use.startswith("https://")):
        use = "https://" + use
    os.environ["OPENAI_BASE_URL"] = use
    os.environ["OPENAI_API_BASE"] = use


_sanitize_openai_base()


def _flag(name: str, default: str = "1") -> bool:
    return os.getenv(name, default).lower() not in {"0", "false", "no"}


class Settings(BaseSettings):
    """Runtime settings for the API.

    Values are loaded from environment variables and optional .env files.
    """

    APP_NAME: str = "Drew Quote Assistant"
    ENV: str = os.getenv("ENV", "dev")

    TRACE_LOGGING: bool = False

    # Defaults applied when the caller sends no user settings
    DEFAULT_LABOR_RATE: float = float(os.getenv("DEFAULT_LABOR_RATE", "50"))
    DEFAULT_MARKUP_PERCENT: Optional[float] = (
        float(os.getenv("DEFAULT_MARKUP_PERCENT")) if os.getenv("DEFAULT_MARKUP_PERCENT") else None
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Paths
PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))  # repo root
DATA_DIR = os.path.join(PROJECT_ROOT, "data")

# Tradecraft knowledge base (job-type documents)
TRADECRAFT_PATH = os.getenv("TRADECRAFT_PATH", os.path.join(DATA_DIR, "tradecraft.json"))

# Persisted product catalog index (built by the catalog sync pipeline)
CATALOG_INDEX_DIR = os.getenv(
    "CATALOG_INDEX_DIR", os.path.join(PROJECT_ROOT, ".vectordb", "catalog_faiss")
)
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")

# LLM used for delegated interpretation and checklist adjustment
LLM_MODEL = os.getenv("LLM_MODEL", os.getenv("OPENAI_MODEL", "gpt-4o-mini"))
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.1"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "256"))

# Quoting defaults
DEFAULT_LABOR_RATE = float(os.getenv("DEFAULT_LABOR_RATE", "50"))
DEFAULT_MARKUP_PERCENT = (
    float(os.getenv("DEFAULT_MARKUP_PERCENT")) if os.getenv("DEFAULT_MARKUP_PERCENT") else None
)
CURRENCY_SYMBOL = os.getenv("CURRENCY_SYMBOL", "$")

# Consecutive failed clarifications before escalating to the trade agent
CLARIFY_ESCALATION_THRESHOLD = int(os.getenv("CLARIFY_ESCALATION_THRESHOLD", "2"))

# Seconds allowed for any single collaborator call before it is treated as failed
COLLABORATOR_TIMEOUT_S = float(os.getenv("COLLABORATOR_TIMEOUT_S", "8"))

# Product resolution knobs
SEARCH_TERMS_PER_ITEM = int(os.getenv("SEARCH_TERMS_PER_ITEM", "2"))
PRODUCT_RESULTS_PER_TERM = int(os.getenv("PRODUCT_RESULTS_PER_TERM", "2"))

# Upper bound on chained automatic transitions in one dispatch
MAX_AUTO_TRANSITIONS = int(os.getenv("MAX_AUTO_TRANSITIONS", "10"))

# Feature flags
ENABLE_LLM_INTERPRETATION = _flag("ENABLE_LLM_INTERPRETATION")
ENABLE_CHECKLIST_ADJUSTMENT = _flag("ENABLE_CHECKLIST_ADJUSTMENT")
RETURN_DEBUG_TRACE = _flag("RETURN_DEBUG_TRACE", "0")
