"""Background webhook delivery.

The request path only puts :class:`~ahoi.events.dispatcher.DeliveryTask`
messages on a queue. A single worker thread takes them off and POSTs them
with httpx. Failed deliveries are logged and dropped.
"""

from __future__ import annotations

import logging
import queue
import threading

import httpx

from ahoi.events.dispatcher import DeliveryTask

logger = logging.getLogger(__name__)

_STOP = object()


class DeliveryWorker:
    """Consumes delivery tasks from a queue on a daemon thread."""

    def __init__(
        self,
        timeout: float = 15.0,
        max_redirects: int = 5,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            timeout: Per-request timeout in seconds
            max_redirects: Redirects followed before giving up
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self._queue: queue.Queue[object] = queue.Queue()
        self._client = httpx.Client(
            timeout=timeout,
            follow_redirects=True,
            max_redirects=max_redirects,
            transport=transport,
        )
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the worker thread (idempotent)."""
        with self._lock:
            if self.is_running:
                return
            self._thread = threading.Thread(target=self._run, name="ahoi-webhooks", daemon=True)
            self._thread.start()
        logger.info("Webhook delivery worker started")

    def submit(self, task: DeliveryTask) -> None:
        """Queue a delivery; starts the thread on first use."""
        self.start()
        self._queue.put(task)

    def drain(self) -> None:
        """Block until every queued delivery has been attempted."""
        self._queue.join()

    def stop(self, timeout: float = 5.0) -> None:
        """Finish queued deliveries, stop the thread and close the HTTP client."""
        thread = self._thread
        if thread is not None and thread.is_alive():
            self._queue.put(_STOP)
            thread.join(timeout=timeout)
            logger.info("Webhook delivery worker stopped")
        self._thread = None
        self._client.close()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.deliver(item)  # type: ignore[arg-type]
            finally:
                self._queue.task_done()

    def deliver(self, task: DeliveryTask) -> bool:
        """POST one task. Returns True on a 2xx/3xx answer; never raises."""
        try:
            response = self._client.post(
                task.target_url,
                content=task.body,
                headers={"Content-Type": "application/json"},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Webhook {task.subscription_id} ({task.event}) to {task.target_url} failed: {e}")
            return False
        except Exception as e:
            logger.error(f"Webhook {task.subscription_id} delivery crashed: {e}", exc_info=True)
            return False

        if response.status_code >= 400:
            logger.warning(
                f"Webhook {task.subscription_id} ({task.event}) to {task.target_url} "
                f"answered {response.status_code}"
            )
            return False
        logger.debug(f"Webhook {task.subscription_id} ({task.event}) delivered: {response.status_code}")
        return True
