from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level: str = "INFO") -> None:
    """Configure the root logger once; repeated calls only adjust the level."""

    root = logging.getLogger()
    root.setLevel(str(level or "INFO").upper())
    if any(getattr(h, "_hrflow", False) for h in root.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler._hrflow = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # SQL echo is controlled by DB_ECHO; keep the engine logger quiet otherwise.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
