"""Entry point for the Sky Lounge billing Textual app."""

from __future__ import annotations

import logging
from pathlib import Path

from billing.config import DB_PATH, LOG_PATH


def configure_logging(path: str = LOG_PATH, level: int = logging.INFO) -> None:
    """Send log records to a file; the terminal belongs to Textual."""
    log_file = Path(path)
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.setLevel(level)
    root.addHandler(handler)


def main() -> None:
    """Run the Textual application."""
    configure_logging()

    from billing.billing_app import BillingApp
    from billing.gateway import create_gateway
    from billing.persistence import SqliteSnapshotStore
    from billing.session import BillingSession

    store = SqliteSnapshotStore(DB_PATH)
    store.bootstrap_schema()
    session = BillingSession(store, create_gateway())
    BillingApp(session).run()


if __name__ == "__main__":
    main()
