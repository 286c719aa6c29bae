from unittest.mock import AsyncMock

import pytest

from shipping.application.process_outbox_events import ProcessOutboxEventsUseCase
from shipping.presentation.outbox_worker import OutboxWorker


@pytest.mark.asyncio
async def test_run_once_returns_sent_count():
    use_case = AsyncMock(spec=ProcessOutboxEventsUseCase, return_value=3)
    worker = OutboxWorker(use_case=use_case)

    assert await worker.run_once() == 3
    use_case.assert_awaited_once()


@pytest.mark.asyncio
async def test_run_once_survives_relay_failure(caplog):
    use_case = AsyncMock(spec=ProcessOutboxEventsUseCase, side_effect=RuntimeError("db down"))
    worker = OutboxWorker(use_case=use_case)

    assert await worker.run_once() == 0
    assert "Outbox relay pass failed" in caplog.text
