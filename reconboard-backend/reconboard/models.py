# reconboard/models.py
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

SEVERITY_ORDER = ["critical", "high", "medium", "low", "info"]


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def normalize_severity(value: Optional[str]) -> str:
    """Map provider severity labels onto the dashboard's five levels."""
    sev = (value or "").strip().lower()
    if sev in SEVERITY_ORDER:
        return sev
    if sev in ("informational", "information", "none", ""):
        return "info"
    # moderate, warning and anything unrecognised
    return "medium"


class ScanRequest(BaseModel):
    target: str = Field(..., min_length=1)
    sources: List[str] = Field(default_factory=list)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    scan_method: str = "simple"

    @field_validator("target")
    @classmethod
    def strip_target(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Target is required")
        return v


class TargetRequest(BaseModel):
    target: str = Field(..., min_length=1)


class NiktoRequest(TargetRequest):
    port: int = Field(default=80, ge=1, le=65535)
    scan_method: str = "simple"


class ScanStatus(BaseModel):
    scan_id: str
    status: str


class JobStatus(str, Enum):
    PENDING = "Pending"
    RUNNING = "Running"
    FINISHED = "Finished"
    ERROR = "Error"


class ScanJob(BaseModel):
    """A job on an external scanning service, as last seen by the poller."""
    scan_id: str
    status: JobStatus = JobStatus.PENDING
    created_at: datetime = Field(default_factory=now_utc)
    attempts: int = 0


class Finding(BaseModel):
    source: str
    title: str
    summary: str = ""
    severity: str = "info"
    location: Optional[str] = None
    ip: Optional[str] = None
    port: Optional[str] = None
    date: Optional[datetime] = None
    identifier: Optional[str] = None
    cves: List[str] = Field(default_factory=list)
    recommendation: Optional[str] = None
    details: Optional[str] = None

    @field_validator("severity", mode="before")
    @classmethod
    def _severity(cls, v):
        return normalize_severity(v)


class SourceResult(BaseModel):
    source: str
    status: str = "ok"  # ok, error, skipped or cancelled
    findings: List[Finding] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None
    job: Optional[ScanJob] = None
    duration_seconds: float = 0.0


class ScanReport(BaseModel):
    scan_id: str
    target: str = ""
    target_type: Optional[str] = None
    status: str = "in_progress"
    created_at: datetime = Field(default_factory=now_utc)
    finished_at: Optional[datetime] = None
    error: Optional[str] = None
    sources: List[SourceResult] = Field(default_factory=list)
    severity_counts: Dict[str, int] = Field(default_factory=lambda: {s: 0 for s in SEVERITY_ORDER})
    total_findings: int = 0


# ---------- provider payloads ----------

class NiktoVulnerability(BaseModel):
    id: str
    title: str
    description: str
    severity: str
    cve: List[str] = Field(default_factory=list)
    details: Optional[str] = None
    recommendation: Optional[str] = None


class NiktoScanResult(BaseModel):
    target: str
    scan_date: Optional[datetime] = None
    scan_duration: str = "0m 0s"
    target_server: Optional[str] = None
    target_port: int = 80
    total_vulnerabilities: int = 0
    vulnerabilities: List[NiktoVulnerability] = Field(default_factory=list)
    raw_result: Optional[str] = None
    public_url: Optional[str] = None


class OpenPort(BaseModel):
    port: int
    protocol: str = "tcp"
    state: str = "open"
    service: Optional[str] = None
    version: Optional[str] = None


class PortScanResult(BaseModel):
    target: str
    scan_date: datetime = Field(default_factory=now_utc)
    scan_id: Optional[str] = None
    scan_command: Optional[str] = None
    raw_result: Optional[str] = None
    open_ports: List[OpenPort] = Field(default_factory=list)


# ---------- direct endpoint responses ----------

class PortScanResponse(PortScanResult):
    success: bool = True


class NiktoScanResponse(BaseModel):
    success: bool = True
    scan_id: Optional[str] = None
    scan_result: NiktoScanResult


class ShodanResponse(BaseModel):
    host_data: Optional[Dict[str, Any]] = None
    dns_data: Optional[Dict[str, Any]] = None
    findings: List[Finding] = Field(default_factory=list)


class LeakixLookupResponse(BaseModel):
    formatted_results: List[Finding] = Field(default_factory=list)
    services: List[Dict[str, Any]] = Field(default_factory=list)
    leaks: List[Dict[str, Any]] = Field(default_factory=list)
