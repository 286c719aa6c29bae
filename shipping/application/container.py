from dependency_injector import containers, providers

from shipping.application.create_shipment import CreateShipmentUseCase
from shipping.application.drafts import DraftsUseCase
from shipping.application.manage_shipments import ManageShipmentsUseCase
from shipping.application.notifications import NotificationsUseCase
from shipping.application.payment_lifecycle import PaymentLifecycle
from shipping.application.process_outbox_events import ProcessOutboxEventsUseCase
from shipping.core.calculator import ShippingCostCalculator
from shipping.core.rates import RateTable
from shipping.infrastructure.container import InfrastructureContainer


class ApplicationContainer(containers.DeclarativeContainer):
    config = providers.Configuration()
    infrastructure_container = providers.Container[InfrastructureContainer](
        InfrastructureContainer,
        config=config,
    )

    rates = providers.Singleton[RateTable](
        RateTable,
        international=config.rates.international.as_float(),
        local=config.rates.local.as_float(),
        vat=config.rates.vat.as_float(),
        insurance_basic=config.rates.insurance_basic.as_float(),
        insurance_premium=config.rates.insurance_premium.as_float(),
    )
    calculator = providers.Singleton[ShippingCostCalculator](
        ShippingCostCalculator, rates=rates
    )

    create_shipment_use_case = providers.Singleton[CreateShipmentUseCase](
        CreateShipmentUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
        calculator=calculator,
    )
    drafts_use_case = providers.Singleton[DraftsUseCase](
        DraftsUseCase, unit_of_work=infrastructure_container.unit_of_work
    )
    manage_shipments_use_case = providers.Singleton[ManageShipmentsUseCase](
        ManageShipmentsUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
        calculator=calculator,
    )
    payment_lifecycle = providers.Singleton[PaymentLifecycle](
        PaymentLifecycle, unit_of_work=infrastructure_container.unit_of_work
    )
    notifications_use_case = providers.Singleton[NotificationsUseCase](
        NotificationsUseCase, unit_of_work=infrastructure_container.unit_of_work
    )
    process_outbox_events_use_case = providers.Singleton[ProcessOutboxEventsUseCase](
        ProcessOutboxEventsUseCase,
        unit_of_work=infrastructure_container.unit_of_work,
        kafka_producer=infrastructure_container.kafka_producer,
        payments_topic=config.kafka.payments_topic,
        shipments_topic=config.kafka.shipments_topic,
        emails_topic=config.kafka.emails_topic,
        batch_size=config.outbox.batch_size.as_int(),
    )
