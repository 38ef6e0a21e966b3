"""Run the program engine API with uvicorn.

Run with:  python3 serve.py
"""

from __future__ import annotations

import os

import uvicorn

from api.main import create_app

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))


def main() -> None:
    uvicorn.run(create_app(), host=API_HOST, port=API_PORT, log_level="warning")


if __name__ == "__main__":
    main()
