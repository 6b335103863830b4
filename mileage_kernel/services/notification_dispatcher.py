"""
Module: mileage_kernel.services.notification_dispatcher
Responsibility: Best-effort delivery of workflow notifications.

Architecture position:
    Kernel > Services.  Called by ``VoucherWorkflowService`` strictly AFTER
    the transition has committed.  Delivery never rolls a transition back.

Invariants enforced:
    - ``dispatch`` never raises.  Every request yields exactly one
      ``NotificationOutcome``; failures and timeouts are logged as warnings
      and reported on the outcome.
    - Each delivery runs on a worker thread with a bounded wait so a slow
      transport cannot hold the caller past ``timeout_seconds``.
"""

from __future__ import annotations

import concurrent.futures
import time
from collections.abc import Iterable

from mileage_kernel.domain.notification import (
    DeliveryStatus,
    NotificationOutcome,
    NotificationRequest,
    Notifier,
)
from mileage_kernel.logging_config import get_logger

logger = get_logger("services.notification_dispatcher")

DEFAULT_TIMEOUT_SECONDS = 5.0


class NotificationDispatcher:
    """Runs a ``Notifier`` on a small thread pool with a bounded wait."""

    def __init__(
        self,
        notifier: Notifier,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_workers: int = 4,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        self._notifier = notifier
        self._timeout = timeout_seconds
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="voucher-notify",
        )

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def dispatch(
        self,
        requests: Iterable[NotificationRequest],
    ) -> tuple[NotificationOutcome, ...]:
        """Deliver every request; return one outcome per request, in order."""
        pending = [(request, self._submit(request)) for request in requests]
        if not pending:
            return ()

        deadline = time.monotonic() + self._timeout
        outcomes = []
        for request, future in pending:
            remaining = max(deadline - time.monotonic(), 0.0)
            outcomes.append(self._await(request, future, remaining))
        return tuple(outcomes)

    def _submit(self, request: NotificationRequest) -> concurrent.futures.Future:
        """Schedule delivery.  A pool that refuses work yields a failed future."""
        try:
            return self._executor.submit(self._notifier.notify, request)
        except RuntimeError as exc:
            # Raised once the executor has been shut down.
            future: concurrent.futures.Future = concurrent.futures.Future()
            future.set_exception(exc)
            return future

    def _await(
        self,
        request: NotificationRequest,
        future: concurrent.futures.Future,
        timeout: float,
    ) -> NotificationOutcome:
        log_extra = {
            "action": request.action.value,
            "recipient": request.recipient,
            "voucher_id": str(request.summary.voucher_id),
        }
        try:
            future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            logger.warning(
                "notification_timed_out",
                extra={**log_extra, "timeout_seconds": self._timeout},
            )
            return NotificationOutcome(
                request=request,
                status=DeliveryStatus.TIMED_OUT,
                error=f"delivery did not finish within {self._timeout}s",
            )
        except Exception as exc:
            # Delivery failures are reported, never raised.
            logger.warning(
                "notification_failed",
                extra={**log_extra, "error": f"{type(exc).__name__}: {exc}"},
            )
            return NotificationOutcome(
                request=request,
                status=DeliveryStatus.FAILED,
                error=f"{type(exc).__name__}: {exc}",
            )

        logger.info("notification_sent", extra=log_extra)
        return NotificationOutcome(request=request, status=DeliveryStatus.SENT)

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
