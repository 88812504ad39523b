"""Indexing Client Module

Forwards sanitized documents to the document-indexing service
(Elasticsearch `_doc` API) over HTTPS.

One logical "index this document" call makes up to MAX_ATTEMPTS POSTs.
An attempt fails on a transport error or on any status >= 400. Failed
attempts are followed by a fixed RETRY_INTERVAL pause, except the last
one, after which a DeliveryError carrying the last cause is raised.

TLS certificate validation is controlled by IndexingTarget.verify_tls
and is OFF unless explicitly enabled, matching how the service has
always been deployed. This accepts any certificate the remote presents.
"""

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests
import urllib3

from .errors import DeliveryError
from .models import DeliveryAttempt, IndexingTarget

MAX_ATTEMPTS = 3
RETRY_INTERVAL = 1.0  # seconds, fixed, no jitter


def to_canonical_json(document: Dict[str, Any]) -> str:
    """Serialize a document to the compact JSON text sent downstream."""
    return json.dumps(
        document, ensure_ascii=False, separators=(",", ":"), allow_nan=False
    )


class IndexingClient:
    """Client for a single IndexingTarget.

    The underlying requests.Session is shared by all workers; it is
    only read after construction, and urllib3 manages connection reuse.
    """

    def __init__(
        self,
        target: IndexingTarget,
        logger: Optional[logging.Logger] = None,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int = MAX_ATTEMPTS,
        retry_interval: float = RETRY_INTERVAL,
        timeout: Optional[float] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")

        self.target = target
        self.log = logger or logging.getLogger(__name__)
        self.session = session or requests.Session()
        self.session.verify = target.verify_tls
        self.session.headers.update(
            {
                "Content-Type": "application/json",
                "Authorization": f"ApiKey {target.api_key}",
            }
        )
        self._sleep = sleep
        self.max_attempts = max_attempts
        self.retry_interval = retry_interval
        self.timeout = timeout

        if not target.verify_tls:
            urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)
            self.log.warning(
                "TLS certificate verification is DISABLED for %s "
                "(set ES_VERIFY_TLS=true to enable)",
                target.url,
                extra={"component": "elasticsearch"},
            )

        self.log.info(
            "Indexing client ready: url=%s index=%s",
            target.url,
            target.index,
            extra={"component": "elasticsearch"},
        )

    def index(self, document: Dict[str, Any]) -> List[DeliveryAttempt]:
        """
        Index one document, retrying on failure.

        Args:
            document: Sanitized document. Not modified.

        Returns:
            The attempts made; the last one is the successful one.

        Raises:
            DeliveryError: If every attempt failed. Carries the last
                status code and response body when the remote answered,
                or the transport error message when it did not.
        """
        body = to_canonical_json(document)
        url = self.target.doc_endpoint
        self.log.debug(
            "Preparing to index document: url=%s bytes=%d",
            url,
            len(body),
            extra={"component": "elasticsearch"},
        )

        attempts: List[DeliveryAttempt] = []
        last_status: Optional[int] = None
        last_body: Optional[str] = None
        last_error = ""

        for number in range(1, self.max_attempts + 1):
            attempt, last_body = self._send(url, body, number)
            attempts.append(attempt)

            if attempt.ok:
                self.log.info(
                    "Document indexed into %s (attempt %d/%d)",
                    self.target.index,
                    number,
                    self.max_attempts,
                    extra={"component": "elasticsearch", "attempt": number},
                )
                return attempts

            last_status = attempt.status_code
            last_error = attempt.error or ""
            self.log.warning(
                "Indexing attempt %d/%d failed: %s",
                number,
                self.max_attempts,
                last_error,
                extra={
                    "component": "elasticsearch",
                    "attempt": number,
                    "max_attempts": self.max_attempts,
                    "status_code": last_status,
                },
            )

            if number < self.max_attempts:
                self._sleep(self.retry_interval)

        self.log.error(
            "All %d indexing attempts failed: url=%s index=%s",
            self.max_attempts,
            url,
            self.target.index,
            extra={"component": "elasticsearch", "status_code": last_status},
        )
        raise DeliveryError(
            f"all retries failed: {last_error}",
            attempts=len(attempts),
            status_code=last_status,
            response_body=last_body,
        )

    def _send(self, url: str, body: str, number: int):
        """Make one POST. Returns (attempt record, response body or None)."""
        try:
            response = self.session.post(
                url,
                data=body.encode("utf-8"),
                timeout=self.timeout,
                # per-request so REQUESTS_CA_BUNDLE / CURL_CA_BUNDLE cannot override it
                verify=self.target.verify_tls,
            )
        except requests.RequestException as e:
            return (
                DeliveryAttempt(number=number, ok=False, error=f"error sending request: {e}"),
                None,
            )

        if response.status_code >= 400:
            try:
                text = response.text
            except Exception as e:
                self.log.error(
                    "Failed to read error response body: %s",
                    e,
                    extra={"component": "elasticsearch", "status_code": response.status_code},
                )
                return (
                    DeliveryAttempt(
                        number=number,
                        ok=False,
                        status_code=response.status_code,
                        error=f"elasticsearch error: status={response.status_code}, "
                              "failed to read response",
                    ),
                    None,
                )
            return (
                DeliveryAttempt(
                    number=number,
                    ok=False,
                    status_code=response.status_code,
                    error=f"elasticsearch error: status={response.status_code}, response={text}",
                ),
                text,
            )

        return DeliveryAttempt(number=number, ok=True, status_code=response.status_code), None

    def close(self) -> None:
        self.session.close()
