"""Entrypoint: python -m group_sync"""
from __future__ import annotations

import logging

import uvicorn

from group_sync.config import settings

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not settings.ACCESS_TOKEN:
        logger.error("ACCESS_TOKEN is not set; the view needs the signed-in user's session token")
        raise SystemExit(2)
    uvicorn.run(
        "group_sync.app:create_app",
        factory=True,
        host=settings.VIEW_HOST,
        port=settings.VIEW_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
