"""Background worker process.

RUN:  python -m enrollment.worker

Same image as the API, different command:
  api:    uvicorn enrollment.main:app --host 0.0.0.0 --port 8000
  worker: python -m enrollment.worker

The loop polls every registered queue, hands each task to its handler
and logs the outcome.  One task runs at a time; a payment confirmation
can hold the loop for up to PAYMENT_MAX_CHECKS * PAYMENT_CHECK_INTERVAL
seconds, so run more workers when checkouts pile up.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any
from uuid import UUID

from enrollment.core.config import SETTINGS
from enrollment.core.logging import request_id_var, setup_logging
from enrollment.db.store import store
from enrollment.services import payment_service
from enrollment.services.task_queue import PAYMENT_CONFIRMATION_QUEUE, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("enrollment.worker")


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

HANDLERS: dict[str, TaskHandler] = {}


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(PAYMENT_CONFIRMATION_QUEUE)
async def handle_payment_confirmation(payload: dict) -> None:
    purchase_id = UUID(payload["purchase_id"])
    logger.info("Confirming payment purchase=%s", purchase_id)
    status = await payment_service.confirm_payment(
        store, payment_service.payment_gateway, purchase_id
    )
    logger.info("Payment resolved purchase=%s status=%s", purchase_id, status.value)


# ---------------------------------------------------------------------------
# Main worker loop
# ---------------------------------------------------------------------------


async def run_once(queue_name: str) -> bool:
    """Process at most one task from ``queue_name``.  Returns True if one ran."""
    task = await task_queue.dequeue(queue_name, timeout=1)
    if task is None:
        return False
    handler = HANDLERS[queue_name]
    # Lines logged while the task runs carry the task id as their request id.
    context = request_id_var.set(f"task-{task.id}")
    try:
        await handler(task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        # At-most-once delivery: the task is dropped after logging.
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    finally:
        request_id_var.reset(context)
    return True


async def run_worker() -> None:
    queues = list(HANDLERS.keys())
    logger.info("Worker started, listening on queues: %s", queues)
    while True:
        ran = False
        for queue_name in queues:
            ran = await run_once(queue_name) or ran
        if not ran:
            # The in-memory queue returns immediately when empty.
            await asyncio.sleep(0.5)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
