from datetime import datetime, timedelta
from pathlib import Path
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from dependency_injector import providers
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from shipping.application.container import ApplicationContainer
from shipping.application.create_shipment import ShipmentDTO
from shipping.core.calculator import ShippingCostCalculator
from shipping.core.models import (
    Address,
    Contact,
    Dimensions,
    Package,
    Pickup,
    ShipmentTypeEnum,
    utcnow,
)
from shipping.core.rates import RateTable
from shipping.infrastructure.db_schema import metadata
from shipping.infrastructure.kafka_producer import KafkaProducer
from shipping.infrastructure.repositories import (
    NotificationRepository,
    OutboxRepository,
    ShipmentRepository,
)
from shipping.infrastructure.unit_of_work import UnitOfWork
from shipping.presentation import api

CONFIG_PATH = Path(__file__).parent / "shipping" / "config.yaml"


def next_weekday(days_ahead: int = 3) -> datetime:
    """A pickup date inside the booking window that is not on a weekend."""
    day = (utcnow() + timedelta(days=days_ahead)).replace(
        hour=10, minute=0, second=0, microsecond=0
    )
    while day.weekday() >= 5:
        day += timedelta(days=1)
    return day


@pytest.fixture()
async def container(tmp_path: Path) -> ApplicationContainer:
    container = ApplicationContainer()
    container.config.from_yaml(CONFIG_PATH, required=True)
    container.infrastructure_container.async_engine.override(
        providers.Singleton(
            create_async_engine, f"sqlite+aiosqlite:///{tmp_path / 'shipping.db'}"
        )
    )
    return container


@pytest.fixture()
async def session_factory(
    container: ApplicationContainer,
) -> async_sessionmaker[AsyncSession]:
    return container.infrastructure_container.session_factory()


@pytest_asyncio.fixture()
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncSession:
    async with session_factory() as session:
        yield session


@pytest.fixture()
def unit_of_work(session_factory: async_sessionmaker[AsyncSession]) -> UnitOfWork:
    return UnitOfWork(session_factory)


@pytest.fixture()
def fast_api_app(container: ApplicationContainer):
    app = FastAPI()
    app.include_router(api.router)
    api.register_exception_handlers(app)
    container.wire(modules=[api])
    app.container = container
    return app


@pytest_asyncio.fixture(autouse=True)
async def setup_database(container: ApplicationContainer):
    engine = container.infrastructure_container.async_engine()
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)

    yield

    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture()
async def test_async_client(fast_api_app) -> AsyncClient:
    async with AsyncClient(
        transport=ASGITransport(app=fast_api_app),
        base_url="http://test.com",
    ) as client:
        client.app = fast_api_app
        yield client


@pytest.fixture
def calculator() -> ShippingCostCalculator:
    return ShippingCostCalculator(RateTable())


@pytest.fixture
def kafka_producer():
    """Mock Kafka producer for tests"""
    producer = AsyncMock(spec=KafkaProducer)
    producer.send_message = AsyncMock()

    producer.__aenter__ = AsyncMock(return_value=producer)
    producer.__aexit__ = AsyncMock(return_value=None)

    return producer


@pytest.fixture
def package_factory():
    def _create_package(**kwargs):
        defaults = {
            "weight": 10.0,
            "dimensions": Dimensions(length=10, width=10, height=10),
        }
        defaults.update(kwargs)
        return Package(**defaults)

    return _create_package


@pytest.fixture
def shipment_dto_factory(package_factory):
    def _create_shipment(**kwargs):
        international = kwargs.get("type", ShipmentTypeEnum.LOCAL) == (
            ShipmentTypeEnum.INTERNATIONAL
        )
        defaults = {
            "type": ShipmentTypeEnum.LOCAL,
            "sender": Contact(
                name="Ada Sender",
                email="Ada@Example.com",
                phone="+2348000000001",
                address=Address(street="1 Marina", city="Lagos", country="NG"),
            ),
            "recipient": Contact(
                name="Bola Recipient",
                email="bola@example.com",
                phone="+2348000000002",
                address=Address(
                    street="2 Ring Road",
                    city="London" if international else "Ibadan",
                    country="GB" if international else "NG",
                ),
            ),
            "packages": [package_factory()],
            "pickup": Pickup(date=next_weekday()),
        }
        defaults.update(kwargs)
        return ShipmentDTO(**defaults)

    return _create_shipment


@pytest.fixture
async def shipment_repo(session: AsyncSession) -> ShipmentRepository:
    return ShipmentRepository(session)


@pytest.fixture
async def notification_repo(session: AsyncSession) -> NotificationRepository:
    return NotificationRepository(session)


@pytest.fixture
async def outbox_repo(session: AsyncSession) -> OutboxRepository:
    return OutboxRepository(session)
