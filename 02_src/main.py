"""Main entry point for the Feishu gateway."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from feishu_gateway.api import create_fastapi_app
from feishu_gateway.logging_config import setup_logging


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    app = create_fastapi_app()

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
        log_config=None,
    )


if __name__ == "__main__":
    main()
