# reconboard/polling.py
"""
Scan job client shared by the providers that run scans asynchronously
(Nikto, port scanner).

The flow is always the same:
  1. submit the job and read back the provider's scan id
  2. poll the status endpoint with a fixed delay and a hard attempt ceiling
  3. fetch the result once the provider reports ``Finished``

Subclasses only supply the three HTTP calls and say how to read a status
out of the provider's JSON.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import (
    ApiKeyMissingError,
    ScanCancelledError,
    ScanFailedError,
    ScanTimeoutError,
)
from .models import JobStatus, ScanJob

logger = logging.getLogger(__name__)

FINISHED_STATUSES = {"Finished"}
FAILED_STATUSES = {"Error", "Failed", "Timeout"}
PENDING_STATUSES = {"Pending", "Queued"}


def map_job_status(raw: Optional[str]) -> JobStatus:
    if raw in FINISHED_STATUSES:
        return JobStatus.FINISHED
    if raw in FAILED_STATUSES:
        return JobStatus.ERROR
    if raw in PENDING_STATUSES:
        return JobStatus.PENDING
    return JobStatus.RUNNING


class ScanJobClient:
    provider = "scan"
    api_key_header = ""

    def __init__(
        self,
        client: httpx.AsyncClient,
        api_key: Optional[str],
        base_url: str,
        max_attempts: int,
        interval: float,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        if not api_key:
            raise ApiKeyMissingError(self.provider)
        self.client = client
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.max_attempts = max_attempts
        self.interval = interval
        self.cancel_event = cancel_event

    @property
    def headers(self) -> Dict[str, str]:
        return {self.api_key_header: self.api_key}

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    # ---- provider specific ----

    async def submit(self, target: str, options: Dict[str, Any]) -> str:
        raise NotImplementedError

    async def check_status(self, scan_id: str) -> httpx.Response:
        raise NotImplementedError

    async def fetch_result(self, scan_id: str) -> Dict[str, Any]:
        raise NotImplementedError

    def read_status(self, data: Any) -> Optional[str]:
        """Pull the scan status out of a status response; None means retry."""
        if not isinstance(data, dict):
            return None
        return data.get("scan_status")

    # ---- shared flow ----

    async def _pause(self, scan_id: str) -> None:
        if self.cancel_event is None:
            await asyncio.sleep(self.interval)
            return
        if self.cancel_event.is_set():
            raise ScanCancelledError(scan_id)
        if self.interval <= 0:
            return
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            return
        raise ScanCancelledError(scan_id)

    async def poll(self, job: ScanJob) -> ScanJob:
        last_status: Optional[str] = job.status.value
        for attempt in range(1, self.max_attempts + 1):
            await self._pause(job.scan_id)
            job.attempts = attempt
            try:
                resp = await self.check_status(job.scan_id)
            except httpx.HTTPError as e:
                logger.warning("%s poll %d/%d for %s failed: %s", self.provider, attempt, self.max_attempts, job.scan_id, e)
                continue

            if resp.status_code == 404:
                job.status = JobStatus.ERROR
                raise ScanFailedError(
                    f"Scan ID {job.scan_id} not found during polling. It might have expired or been invalid.",
                    job.scan_id,
                )
            if not resp.is_success:
                logger.warning("%s poll %d/%d for %s: status check returned %s, retrying",
                               self.provider, attempt, self.max_attempts, job.scan_id, resp.status_code)
                continue
            try:
                data = resp.json()
            except ValueError:
                logger.warning("%s poll %d/%d for %s: unreadable status body, retrying",
                               self.provider, attempt, self.max_attempts, job.scan_id)
                continue

            raw_status = self.read_status(data)
            if raw_status is None:
                logger.warning("%s poll %d/%d for %s: no usable status in %s",
                               self.provider, attempt, self.max_attempts, job.scan_id, data)
                continue

            last_status = raw_status
            job.status = map_job_status(raw_status)
            logger.info("%s poll %d/%d: scan %s is %s", self.provider, attempt, self.max_attempts, job.scan_id, raw_status)

            if job.status is JobStatus.FINISHED:
                return job
            if job.status is JobStatus.ERROR:
                detail = data.get("error") or data.get("message") or f"Scan failed with status: {raw_status}"
                raise ScanFailedError(str(detail), job.scan_id)

        waited = int(self.max_attempts * self.interval)
        logger.error("%s scan %s timed out after %d attempts (last status %s)",
                     self.provider, job.scan_id, self.max_attempts, last_status)
        raise ScanTimeoutError(
            f"Scan timed out after {waited} seconds. Last known status: {last_status or 'Unknown'}",
            job.scan_id,
        )

    async def run(self, target: str, options: Optional[Dict[str, Any]] = None):
        """Submit, wait and fetch. Returns ``(job, result_json)``."""
        options = options or {}
        scan_id = await self.submit(target, options)
        logger.info("%s scan started for %s (scan id %s)", self.provider, target, scan_id)
        job = ScanJob(scan_id=scan_id)
        await self.poll(job)
        logger.info("%s scan %s finished, fetching results", self.provider, scan_id)
        result = await self.fetch_result(scan_id)
        return job, result
