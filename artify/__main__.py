"""
Run the Artify backend with uvicorn: ``python -m artify``.
"""

from __future__ import annotations

import logging

import uvicorn

from artify.config import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Server starting on port %d", settings.port)
    uvicorn.run("artify.app:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
