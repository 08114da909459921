import asyncio

from queue_router.core.db import close_engine, get_session_factory, init_engine
from queue_router.core.logging import get_logger, setup_logging
from queue_router.infra.db.seed import seed_default_operators

logger = get_logger(__name__)


async def main() -> None:
    setup_logging(format="console")
    engine = init_engine()
    try:
        session_factory = get_session_factory()
        async with session_factory() as session:
            await seed_default_operators(session)
            await session.commit()
        logger.info("operators_seeded")
    finally:
        await close_engine(engine)


if __name__ == "__main__":
    asyncio.run(main())
