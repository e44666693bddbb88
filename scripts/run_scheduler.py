import argparse
import logging
import signal
import threading

from app.config import get_settings
from app.core.logging import setup_logging
from app.database import Base, engine, ensure_sqlite_schema
from app.models import import_all_models

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Run the console housekeeping scheduler.")
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Run every job once and exit.",
    )
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()
    settings = get_settings()

    import_all_models()
    Base.metadata.create_all(bind=engine)
    ensure_sqlite_schema()

    from app.main import build_scheduler

    scheduler = build_scheduler()
    if args.run_once:
        for job in scheduler.jobs():
            scheduler.run_now(job.name)
            logger.info("%s: %s", job.name, job.last_error or job.last_result)
        return

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled by SCHEDULER_ENABLED.")
        return

    stop = threading.Event()
    signal.signal(signal.SIGINT, lambda *_: stop.set())
    signal.signal(signal.SIGTERM, lambda *_: stop.set())
    scheduler.start()
    try:
        stop.wait()
    finally:
        scheduler.stop()


if __name__ == "__main__":
    main()
