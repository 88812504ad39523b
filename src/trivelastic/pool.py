"""Worker Pool Module

Bounded set of persistent worker threads that every inbound HTTP
request is funnelled through. At most `size` documents are processed
at once regardless of how many requests are in flight; submitters
beyond that block on the intake queue instead of being rejected.

Per-item processing:
  1. Reject anything but POST (405)
  2. Read the body (400 on failure)
  3. Decode it as one JSON object (400 on failure)
  4. Sanitize
  5. Index, with retries
  6. Reply "success", or "warning" if indexing failed; both are 200
     and echo the sanitized document back as `data`
"""

import json
import logging
import os
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .errors import DeliveryError, RequestError
from .models import ProcessResponse
from .sanitizer import sanitize_document

JSON_MEDIA_TYPE = "application/json"
TEXT_MEDIA_TYPE = "text/plain; charset=utf-8"

SUCCESS_MESSAGE = "Data processed successfully"
WARNING_MESSAGE = "Request processed but failed to store in Elasticsearch"

_STOP = object()


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name!r}")


def default_worker_count() -> int:
    """Two workers per available CPU."""
    return 2 * (os.cpu_count() or 1)


@dataclass
class Reply:
    """What a worker hands back to the waiting submitter."""
    status_code: int
    body: str
    media_type: str = JSON_MEDIA_TYPE


@dataclass
class WorkItem:
    """One inbound request waiting for, or in, a worker."""
    method: str
    path: str
    read_body: Callable[[], bytes]
    future: "Future[Reply]" = field(default_factory=Future)


class WorkerPool:
    """Fixed-size pool of document-processing threads.

    Exactly one instance is built per process by the entry point and
    shared by every request handler.
    """

    def __init__(
        self,
        size: int,
        indexer: Any,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """
        Args:
            size: Number of workers and intake queue capacity. Must be >= 1
                and never changes afterwards.
            indexer: Object with an `index(document)` method that raises
                DeliveryError on failure (normally an IndexingClient).
            logger: Logger used by the pool and its workers.
        """
        if size < 1:
            raise ValueError(f"Worker pool size must be >= 1, got {size}")

        self.size = size
        self.indexer = indexer
        self.log = logger or logging.getLogger(__name__)
        self._queue: "queue.Queue[Any]" = queue.Queue(maxsize=size)
        self._closed = False
        self._lock = threading.Lock()
        self._threads: List[threading.Thread] = []

        self.log.info(
            "Initializing worker pool with %d workers",
            size,
            extra={"component": "worker_pool", "workers": size},
        )
        for worker_id in range(size):
            thread = threading.Thread(
                target=self._worker,
                args=(worker_id,),
                name=f"worker-{worker_id}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)

    def submit(self, method: str, path: str, read_body: Callable[[], bytes]) -> Reply:
        """
        Queue a request and block until a worker has produced its reply.

        Blocks on enqueue while all `size` queue slots are taken.

        Raises:
            RuntimeError: If the pool has been shut down, or shuts down
                before a worker takes the item.
        """
        with self._lock:
            if self._closed:
                raise RuntimeError("Worker pool is shut down")

        item = WorkItem(method=method, path=path, read_body=read_body)
        self.log.debug(
            "Submitting %s %s to worker pool",
            method,
            path,
            extra={"component": "worker_pool", "method": method, "path": path},
        )
        self._queue.put(item)

        with self._lock:
            closed = self._closed
        if closed:
            # enqueued while shutting down; workers may already be gone
            self._join()
            self._fail_pending()
        return item.future.result()

    def _worker(self, worker_id: int) -> None:
        extra = {"component": "worker_pool", "worker_id": worker_id}
        self.log.debug("Worker %d started", worker_id, extra=extra)

        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    self.log.debug("Worker %d stopping", worker_id, extra=extra)
                    return
                self.log.debug("Worker %d processing new request", worker_id, extra=extra)
                try:
                    reply = self.process(item, worker_id)
                except Exception as e:
                    self.log.exception(
                        "Unexpected error processing request", extra=extra
                    )
                    reply = Reply(500, f"Internal server error: {e}", TEXT_MEDIA_TYPE)
                item.future.set_result(reply)
            finally:
                self._queue.task_done()

    def process(self, item: WorkItem, worker_id: int = -1) -> Reply:
        """Run one work item end to end and build the reply."""
        extra = {"component": "worker_pool", "worker_id": worker_id}

        try:
            document = self._decode(item, extra)
        except RequestError as e:
            return Reply(e.status_code, e.message, TEXT_MEDIA_TYPE)

        clean = sanitize_document(document)
        self.log.debug(
            "JSON sanitized: %d -> %d top-level keys",
            len(document),
            len(clean),
            extra=extra,
        )

        try:
            self.indexer.index(clean)
        except DeliveryError as e:
            self.log.error(
                "Failed to index document: %s",
                e,
                extra={**extra, "status_code": e.status_code},
            )
            return self._json_reply("warning", WARNING_MESSAGE, clean)

        self.log.info("Request processed successfully", extra=extra)
        return self._json_reply("success", SUCCESS_MESSAGE, clean)

    def _decode(self, item: WorkItem, extra: Dict[str, Any]) -> Dict[str, Any]:
        if item.method.upper() != "POST":
            self.log.warning(
                "Invalid HTTP method %s", item.method, extra={**extra, "method": item.method}
            )
            raise RequestError(405, "Only POST method is allowed")

        try:
            raw = item.read_body()
        except Exception as e:
            self.log.error("Failed to read request body: %s", e, extra=extra)
            raise RequestError(400, f"Error reading body: {e}")

        self.log.debug("Received JSON payload (%d bytes)", len(raw), extra=extra)

        try:
            document = json.loads(raw, parse_constant=_reject_constant)
        except ValueError as e:
            self.log.error("Failed to parse JSON: %s", e, extra=extra)
            raise RequestError(400, f"Error parsing JSON: {e}")

        if document is None:
            # a literal null body decodes to an empty document
            document = {}

        if not isinstance(document, dict):
            self.log.error(
                "Failed to parse JSON: top-level %s", type(document).__name__, extra=extra
            )
            raise RequestError(
                400,
                f"Error parsing JSON: expected a JSON object, got {type(document).__name__}",
            )

        return document

    @staticmethod
    def _json_reply(status: str, message: str, data: Dict[str, Any]) -> Reply:
        body = ProcessResponse(status=status, message=message, data=data)
        return Reply(200, body.model_dump_json())

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting work and let every worker exit after its current item."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        self.log.info("Shutting down worker pool", extra={"component": "worker_pool"})
        for _ in self._threads:
            self._queue.put(_STOP)
        if wait:
            self._join()
            self._fail_pending()

    def _join(self) -> None:
        for thread in self._threads:
            thread.join()

    def _fail_pending(self) -> None:
        """Fail every item still queued once no worker is left to take it."""
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return
            if isinstance(item, WorkItem) and not item.future.done():
                item.future.set_exception(RuntimeError("Worker pool is shut down"))
            self._queue.task_done()
