"""
Run the Drew quote assistant API with uvicorn.
Falls back to an ephemeral port when the requested one is busy.
"""

import argparse
import logging
import os
import socket
import sys
from contextlib import closing
from pathlib import Path

import uvicorn
from dotenv import load_dotenv, find_dotenv

# Load environment variables early
load_dotenv(find_dotenv())

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

# Add the project root to PYTHONPATH for imports
sys.path.insert(0, str(Path(__file__).parent))

from api.server import app  # noqa: E402


def _port_available(host: str, port: int) -> bool:
    """Return True if we can bind to the given host:port."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        try:
            s.bind((host, port))
            return True
        except OSError:
            return False


def main() -> None:
    parser = argparse.ArgumentParser(description="Run Drew Quote Assistant API")
    parser.add_argument("--host", default=os.getenv("HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", "8000")))
    parser.add_argument(
        "--reload",
        action="store_true",
        default=os.getenv("RELOAD", "0").strip().lower() not in {"0", "false", "no"},
        help="Enable auto-reload (dev only)",
    )
    args = parser.parse_args()

    host = args.host
    port = args.port
    if not _port_available(host, port):
        print(f"[run_api] Port {port} is busy; selecting an ephemeral port.")
        port = 0

    uvicorn_kwargs = dict(
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    if args.reload:
        base = Path(__file__).parent
        # Limit what we watch and exclude chatty directories like the venv
        uvicorn_kwargs.update(
            {
                "reload_dirs": [str(base / "drew"), str(base / "api"), str(base / "data")],
                "reload_excludes": [
                    ".venv/*",
                    "venv/*",
                    "**/__pycache__/*",
                    "**/*.pyc",
                    ".git/*",
                    ".vectordb/*",
                ],
            }
        )
        # Reload needs an import string, not an app object
        uvicorn.run("api.server:app", **uvicorn_kwargs)
    else:
        uvicorn.run(app, **uvicorn_kwargs)


if __name__ == "__main__":
    main()
