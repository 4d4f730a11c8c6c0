"""
Delete rows past their retention expiry.
Run: python -m scripts.purge_expired
"""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.core import config
from app.core.logging_config import setup_logging
from app.db.session import SessionLocal
from app.services.retention_service import purge_expired
import logging

setup_logging(log_level=config.LOG_LEVEL)
logger = logging.getLogger(__name__)


def main() -> int:
    db = SessionLocal()
    try:
        counts = purge_expired(db)
    except Exception as e:
        db.rollback()
        logger.error(f"Retention sweep failed: {e}", exc_info=True)
        return 1
    finally:
        db.close()

    for entity, deleted in counts.items():
        print(f"{entity}: {deleted} deleted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
