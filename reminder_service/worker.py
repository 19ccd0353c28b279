#!/usr/bin/env python3
"""
Reminder scheduler worker process
Runs the polling loop in the foreground until SIGINT/SIGTERM
"""

import logging
import signal
import sys

# Load environment variables from .env file before settings are read
from dotenv import load_dotenv
load_dotenv()

from prometheus_client import start_http_server

from .bootstrap import build_container
from .config import settings
from .utils.timezone import utcnow

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.StreamHandler()],
)

logger = logging.getLogger(__name__)


def main():
    """Main entry point for worker process"""
    logger.info("🚀 Starting reminder scheduler worker")
    logger.info(f"📅 Started at: {utcnow().isoformat()}")

    container = build_container(settings, create_tables=True)
    scheduler = container.build_scheduler(settings)

    if settings.METRICS_ENABLED:
        start_http_server(settings.METRICS_PORT)
        logger.info(f"📈 Metrics exposed on :{settings.METRICS_PORT}")

    def _shutdown(signum, frame):
        logger.info(f"🛑 Received signal {signum}, stopping scheduler")
        scheduler.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        scheduler.run_forever()
    except Exception as e:
        logger.error(f"❌ Worker process error: {e}")
        sys.exit(1)
    finally:
        container.close()
        logger.info("👋 Worker process terminated")


if __name__ == "__main__":
    main()
