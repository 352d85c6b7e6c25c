"""
lunarwave.__main__ — Entry point for ``python -m lunarwave``
==============================================================

Wiring:
1. Load .env (secrets).
2. Configure logging.
3. Serve the FastAPI app with uvicorn; the app's lifespan loads
   config.yaml, initialises the store and starts the periodic sweeps.

Run with::

    python -m lunarwave
"""

from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("lunarwave")


def main() -> None:
    """Bootstrap and run the Lunarwave API."""
    load_dotenv()

    host = os.getenv("LUNARWAVE_HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    logger.info("Starting Lunarwave API on %s:%d", host, port)

    uvicorn.run("lunarwave.api.main:app", host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
