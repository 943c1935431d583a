"""Downstream workflow service client.

The workflow service accepts one serialized feedback record per request.
HTTP 200 means "accepted, mark processed"; any other status means "not yet
processed, retry later". Transport failures are raised to the caller.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from feedback_aggregator.config import settings
from feedback_aggregator.schemas.feedback import FeedbackRecord

logger = logging.getLogger(__name__)

_DETAIL_MAX_CHARS = 500


@dataclass(frozen=True)
class SubmitOutcome:
    ok: bool
    status_code: int
    detail: str = ""


class FeedbackProcessor(Protocol):
    async def submit(self, record: FeedbackRecord) -> SubmitOutcome:
        ...


class WorkflowClient:
    """POSTs feedback records to ``<base_url>/process``."""

    def __init__(
        self,
        base_url: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = (base_url or settings.WORKFLOW_SERVICE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.RELAY_SUBMIT_TIMEOUT_S
        self._transport = transport

    @property
    def process_url(self) -> str:
        return f"{self.base_url}/process"

    async def submit(self, record: FeedbackRecord) -> SubmitOutcome:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            resp = await client.post(self.process_url, json=record.to_wire())
        if resp.status_code == 200:
            return SubmitOutcome(ok=True, status_code=resp.status_code)
        detail = (resp.text or "Unknown error")[:_DETAIL_MAX_CHARS]
        logger.info(
            "Workflow service refused feedback %s with %s", record.id, resp.status_code
        )
        return SubmitOutcome(ok=False, status_code=resp.status_code, detail=detail)


def get_processor() -> FeedbackProcessor:
    """FastAPI dependency — processor pointed at the configured workflow service."""
    return WorkflowClient()
