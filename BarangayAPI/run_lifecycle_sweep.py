"""
Run the lifecycle housekeeping once, for platforms that schedule jobs externally
(e.g. Heroku Scheduler): python -m BarangayAPI.run_lifecycle_sweep
"""

import logging
import sys

from .config import SWEEP_SCHEDULER_ENABLED
from .errors import PersistenceError
from .housekeeping import run_housekeeping

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def main() -> int:
    logger.info("Starting lifecycle sweep job.")
    if SWEEP_SCHEDULER_ENABLED:
        logger.warning(
            "SWEEP_SCHEDULER_ENABLED is on; set it to false on the web processes when sweeps run from cron"
        )
    try:
        result = run_housekeeping()
    except PersistenceError:
        logger.exception("Lifecycle sweep could not read document requests")
        return 1
    logger.info(
        f"Expired {result.expired_count}, archived {result.archived_count}, "
        f"failed {result.failed_count}, purged {result.rejected_purged} rejected requests "
        f"and {result.announcements_purged} announcements."
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
