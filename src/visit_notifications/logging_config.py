from __future__ import annotations

import logging

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    resolved = getattr(logging, str(level).upper(), None)
    if not isinstance(resolved, int):
        resolved = logging.INFO

    logging.basicConfig(
        level=resolved,
        format=_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # requests/urllib3 are chatty at DEBUG about connection pooling.
    logging.getLogger("urllib3").setLevel(max(resolved, logging.WARNING))
