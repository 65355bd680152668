import asyncio
import logging
import signal

from app.dependencies import build_consumer
from app.logging import configure_logging
from infra.db.session import init_db

logger = logging.getLogger("worker")


async def _serve():
    consumer = build_consumer()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, consumer.stop)
        except NotImplementedError:
            pass  # windows
    await consumer.run()


def main():
    configure_logging()
    init_db()
    logger.info("Worker started (LLM + Qdrant)")
    asyncio.run(_serve())


if __name__ == "__main__":
    main()
