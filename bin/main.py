import asyncio
import logging
from pathlib import Path

import uvicorn
from fastapi import FastAPI

from shipping.application.container import ApplicationContainer
from shipping.presentation import api
from shipping.presentation.container import PresentationContainer
from shipping.presentation.outbox_worker import OutboxWorker

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).resolve().parent.parent / "shipping" / "config.yaml"


def build_api(container: ApplicationContainer) -> FastAPI:
    app = FastAPI(title="Shipping Service")
    app.include_router(api.router)
    api.register_exception_handlers(app)
    container.wire(modules=[api])
    app.container = container
    return app


async def main():
    presentation_container = PresentationContainer()
    presentation_container.config.from_yaml(CONFIG_PATH, required=True, envs_required=False)

    app = build_api(presentation_container.application)

    outbox_worker: OutboxWorker = presentation_container.outbox_worker()

    logger.info("Starting Shipping Service...")
    api_task = asyncio.create_task(
        uvicorn.Server(
            uvicorn.Config(app, host="0.0.0.0", port=8000, log_level="info")
        ).serve()
    )
    outbox_task = asyncio.create_task(outbox_worker.run())

    await asyncio.gather(api_task, outbox_task)


if __name__ == "__main__":
    asyncio.run(main())
