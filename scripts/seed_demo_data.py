#!/usr/bin/env python3
"""
Studio Client Portal — demo seed.

Standalone equivalent of ``flask seed-demo`` for environments without the
Flask CLI on PATH.

Usage:
    python scripts/seed_demo_data.py
    APP_ENV=development python scripts/seed_demo_data.py
"""

import logging
import sys

sys.path.insert(0, ".")

from app import create_app
from app.services.demo_seed_service import seed_demo_data

logger = logging.getLogger(__name__)


def main() -> int:
    app = create_app()
    with app.app_context():
        summary = seed_demo_data()
    logger.info("Seed finished: %s", summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
