from __future__ import annotations

import os

from maintdesk.cli import run_cli
from maintdesk.config import ConfigError, load_config
from maintdesk.db import Db, DbError
from maintdesk.logging_setup import setup_logging


def main() -> int:
    try:
        cfg = load_config(os.environ.get("MAINTDESK_CONFIG", "config.toml"))
        setup_logging(cfg.log_level, cfg.log_format)
        db = Db(cfg.db)
        run_cli(db, max_page_size=cfg.business.max_page_size)
        return 0
    except ConfigError as e:
        print(f"[CONFIG ERROR] {e}")
        return 2
    except DbError as e:
        print(f"[DB ERROR] {e}")
        return 3
    except KeyboardInterrupt:
        print("\nInterrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
