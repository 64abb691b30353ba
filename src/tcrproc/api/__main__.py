# src/tcrproc/api/__main__.py
from __future__ import annotations

import uvicorn

from tcrproc.env import load_dotenv_if_present


def main() -> None:
    # .env first so TCRPROC_* vars exist before the config is read
    load_dotenv_if_present()

    from tcrproc.api.app import create_app
    from tcrproc.config import load_processor_config

    cfg = load_processor_config()
    uvicorn.run(create_app(), host=cfg.api_host, port=int(cfg.api_port), log_level="info")


if __name__ == "__main__":
    main()
