"""Data Models Module

Defines Pydantic models for the values that flow through the service:
the indexing target shared by all workers, the record of a single
delivery attempt, and the JSON body returned to callers.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class IndexingTarget(BaseModel):
    """Remote collection that sanitized documents are indexed into.

    Built once from process configuration and shared read-only by the
    indexing client and every worker.
    """
    model_config = ConfigDict(frozen=True)

    url: str
    api_key: str
    index: str
    verify_tls: bool = False

    @field_validator("url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def doc_endpoint(self) -> str:
        """URL that single documents are POSTed to."""
        return f"{self.url}/{self.index}/_doc"


class DeliveryAttempt(BaseModel):
    """Outcome of one try to index a document."""
    number: int
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


class ProcessResponse(BaseModel):
    """JSON body written back to the caller once a document was handled.

    `status` is "success" when the document was stored downstream and
    "warning" when it was accepted here but indexing failed.
    """
    status: str
    message: str
    data: Dict[str, Any]
