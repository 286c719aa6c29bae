from dependency_injector import containers, providers
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shipping.infrastructure.kafka_producer import KafkaProducer
from shipping.infrastructure.unit_of_work import UnitOfWork


class InfrastructureContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    async_engine = providers.Singleton[AsyncEngine](
        create_async_engine,
        config.db.dsn,
        pool_size=config.db.pool_size.as_int(),
        pool_recycle=config.db.pool_recycle.as_int(),
    )
    session_factory = providers.Singleton[async_sessionmaker[AsyncSession]](
        async_sessionmaker, async_engine, expire_on_commit=False, class_=AsyncSession
    )
    unit_of_work = providers.Singleton[UnitOfWork](
        UnitOfWork, session_factory=session_factory
    )
    kafka_producer = providers.Singleton[KafkaProducer](
        KafkaProducer,
        bootstrap_servers=config.kafka.bootstrap_servers,
        topic=config.kafka.shipments_topic,
    )
