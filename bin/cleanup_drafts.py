import asyncio
import logging
from pathlib import Path

from shipping.application.container import ApplicationContainer

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parent.parent / "shipping" / "config.yaml"


async def main():
    container = ApplicationContainer()
    container.config.from_yaml(CONFIG_PATH, required=True, envs_required=False)

    drafts_use_case = container.drafts_use_case()
    try:
        deleted = await drafts_use_case.cleanup()
        logger.info(f"Draft cleanup finished, {deleted} drafts removed")
    finally:
        await container.infrastructure_container.async_engine().dispose()


if __name__ == "__main__":
    asyncio.run(main())
