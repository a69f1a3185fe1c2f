"""
Run the mock backend:

    python -m forgewatch.mock_backend
"""

import logging
import os

import uvicorn

from .app import create_app

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("mock_backend")


if __name__ == "__main__":
    host = os.getenv("MOCK_BACKEND_HOST", "127.0.0.1")
    port = int(os.getenv("MOCK_BACKEND_PORT", "3000"))

    logger.info(f"🚀 Starting mock backend on {host}:{port}")
    uvicorn.run(create_app(), host=host, port=port)
