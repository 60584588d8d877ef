"""Run the service locally for the desktop shell: ``python -m curlew``."""

from __future__ import annotations

import os

import uvicorn

from curlew.main import create_app


def main() -> None:
    host = os.environ.get("CURLEW_HOST", "127.0.0.1")
    port = int(os.environ.get("CURLEW_PORT", "8765"))
    uvicorn.run(create_app(), host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
