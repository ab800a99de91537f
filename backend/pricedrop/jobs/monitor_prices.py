import asyncio
import sys

from pricedrop.core.errors import PriceDropError
from pricedrop.core.logger import configure_logging, get_logger
from pricedrop.db.base import create_tables, get_engine
from pricedrop.services.monitor import build_monitor

logger = get_logger(__name__)


async def run_job() -> dict:
    monitor = build_monitor()
    try:
        monitor.store.purge_invalid()
        result = await monitor.run_once()
    finally:
        await monitor.aclose()
    return result.as_dict()


def main() -> int:
    configure_logging()
    create_tables(get_engine())
    try:
        result = asyncio.run(run_job())
    except PriceDropError as exc:
        logger.error("job.failed", error=str(exc))
        return 1

    print(f"checked={result['checked']} notified={result['notified']} failed={result['failed']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
