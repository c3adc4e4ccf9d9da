# reconboard/store.py
import asyncio
import logging
from datetime import timedelta
from uuid import uuid4

from .config import settings
from .models import ScanReport, ScanRequest, now_utc
from .normalize import count_severities

store = {}

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = {"in_progress", "cancelling"}


def prune_finished(ttl_seconds=None):
    """Drop finished jobs created more than ``ttl_seconds`` ago."""
    ttl = settings.job_ttl_seconds if ttl_seconds is None else ttl_seconds
    cutoff = now_utc() - timedelta(seconds=ttl)
    expired = [
        scan_id for scan_id, entry in store.items()
        if entry["status"] not in ACTIVE_STATUSES and entry["created_at"] < cutoff
    ]
    for scan_id in expired:
        del store[scan_id]
    if expired:
        logger.info("Pruned %d finished scan jobs", len(expired))
    return len(expired)


def create_job(request: ScanRequest) -> str:
    prune_finished()
    scan_id = str(uuid4())
    store[scan_id] = {
        "status": "in_progress",
        "target": request.target,
        "sources": list(request.sources),
        "created_at": now_utc(),
        "cancel_event": asyncio.Event(),
        "report": None,
        "partial": [],
        "error": None,
    }
    return scan_id


def get_status(scan_id):
    if scan_id not in store:
        return {"scan_id": scan_id, "status": "not_found"}
    return {"scan_id": scan_id, "status": store[scan_id]["status"]}


def get_results(scan_id):
    if scan_id not in store:
        return ScanReport(scan_id=scan_id, status="not_found")
    entry = store[scan_id]
    if entry["report"] is not None:
        return entry["report"]
    # sources finished so far
    partial = list(entry["partial"])
    findings = [f for r in partial for f in r.findings]
    return ScanReport(
        scan_id=scan_id,
        target=entry["target"],
        status=entry["status"],
        created_at=entry["created_at"],
        error=entry.get("error"),
        sources=partial,
        severity_counts=count_severities(findings),
        total_findings=len(findings),
    )


def cancel_job(scan_id):
    if scan_id not in store:
        return {"scan_id": scan_id, "status": "not_found"}
    entry = store[scan_id]
    if entry["status"] == "in_progress":
        entry["cancel_event"].set()
        entry["status"] = "cancelling"
    return {"scan_id": scan_id, "status": entry["status"]}
