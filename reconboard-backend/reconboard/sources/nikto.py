# reconboard/sources/nikto.py
"""
Nikto web vulnerability scans through the nikto.online API.

Exports:
 - SOURCE_NAME (str)
 - NiktoScanClient: add_scan / check_scan_status / scan_result job client
 - parse_nikto_output(raw) -> List[NiktoVulnerability]
 - async scan(target, client, port, method) -> (ScanJob, NiktoScanResult)
 - async run(target, client, options) -> SourceResult
"""
SOURCE_NAME = "nikto"
TARGET_TYPES = ("ip", "domain")

import asyncio
import logging
import re
import time
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import UpstreamError
from ..models import Finding, NiktoScanResult, NiktoVulnerability, SourceResult
from ..normalize import parse_timestamp
from ..polling import ScanJobClient
from ..targets import classify_target
from ..upstream import json_body, raise_for_rate_limit

logger = logging.getLogger(__name__)

CVE_RE = re.compile(r"CVE-\d{4}-\d{4,}")
ID_RE = re.compile(r"^[\w-]+$")
LABELLED_LINES = ("Server", "Target IP", "Target Hostname", "Target Port", "Start Time", "End Time")
INFO_IDS = {"server", "retrieved", "target ip", "target hostname", "target port", "start time", "end time"}


def _form(**fields) -> Dict[str, Any]:
    # (None, value) tuples make httpx send multipart/form-data without files
    return {k: (None, str(v)) for k, v in fields.items()}


class NiktoScanClient(ScanJobClient):
    provider = "Nikto"
    api_key_header = "NIKTO-API-KEY"

    async def submit(self, target: str, options: Dict[str, Any]) -> str:
        resp = await self.client.post(
            self.url("add_scan"),
            headers=self.headers,
            files=_form(host=target, method=options.get("scan_method") or "simple", visibility="private"),
        )
        raise_for_rate_limit(resp)
        if not resp.is_success:
            logger.error("Nikto add_scan failed: %s %s", resp.status_code, resp.text[:200])
            raise UpstreamError(f"Scan initiation failed: {resp.status_code} {resp.reason_phrase}", resp.status_code)
        data = json_body(resp, "Nikto add_scan")
        if not isinstance(data, dict):
            raise UpstreamError("Failed to parse Nikto add_scan response: expected a JSON object")
        if data.get("status_code") != 201:
            raise UpstreamError(f"Scan creation failed: API Status {data.get('status_code')}")
        return data["scan_id"]

    async def check_status(self, scan_id: str) -> httpx.Response:
        return await self.client.post(self.url("check_scan_status"), headers=self.headers, files=_form(scan_id=scan_id))

    def read_status(self, data: Any) -> Optional[str]:
        if not isinstance(data, dict) or data.get("status_code") != 200:
            return None
        return data.get("scan_status")

    async def fetch_result(self, scan_id: str) -> Dict[str, Any]:
        resp = await self.client.post(self.url("scan_result"), headers=self.headers, files=_form(scan_id=scan_id))
        raise_for_rate_limit(resp)
        if not resp.is_success:
            raise UpstreamError(f"Result fetch failed: {resp.status_code} {resp.reason_phrase}", resp.status_code)
        data = json_body(resp, "Nikto scan_result")
        if not isinstance(data, dict):
            raise UpstreamError("Failed to parse Nikto scan_result response: expected a JSON object")
        if data.get("status_code") != 200:
            raise UpstreamError(f"Failed to retrieve results: API Status {data.get('status_code')}")
        return data


def determine_severity(vuln_id: str, title: str) -> str:
    lower_id = vuln_id.lower()
    lower_title = title.lower()

    if "rce" in lower_title or "remote code execution" in lower_title:
        return "critical"

    if vuln_id.startswith("CVE-"):
        return "high"
    if "sql" in lower_id or "sql injection" in lower_title:
        return "high"
    if "xss" in lower_id or "xss" in lower_title:
        return "high"
    if "outdated" in lower_title or "deprecated" in lower_title:
        return "high"

    if "directory listing" in lower_title:
        return "medium"
    if "information leak" in lower_title or "information disclosure" in lower_title:
        return "medium"

    if "cookie" in lower_title and "secure" not in lower_title:
        return "low"
    if "header" in lower_title and "security header" not in lower_title:
        return "low"

    if lower_id in INFO_IDS or "target ip" in lower_title or "target hostname" in lower_title or "target port" in lower_title:
        return "info"
    # closing "N requests: ... reported on remote host" summary
    if lower_title.endswith("reported on remote host"):
        return "info"

    return "medium"


RECOMMENDATIONS = [
    (lambda i, t: "rce" in t or "remote code execution" in t,
     "Immediately investigate and patch the vulnerability enabling remote code execution. "
     "Review application logic and dependencies."),
    (lambda i, t: "sql injection" in t,
     "Use parameterized queries or prepared statements. Implement input validation and sanitization. "
     "Apply least privilege principle for database access."),
    (lambda i, t: "xss" in t or "xss" in i,
     "Implement context-aware output encoding (e.g., HTML entity encoding). Use Content Security Policy (CSP). "
     "Validate and sanitize user input."),
    (lambda i, t: "directory listing" in t,
     "Disable directory listing/browsing in the web server configuration "
     "(e.g., `Options -Indexes` in Apache, `autoindex off;` in Nginx)."),
    (lambda i, t: "outdated" in t or "deprecated" in t,
     "Update the identified software component (server, library, framework) to the latest stable and supported "
     "version. Regularly schedule patch management."),
    (lambda i, t: "information leak" in t or "information disclosure" in t,
     "Review server and application configuration to prevent exposure of sensitive information (e.g., stack "
     "traces, version numbers, internal paths). Remove or restrict access to unnecessary files/endpoints."),
    (lambda i, t: "cookie" in t and "secure" not in t,
     "Set the `Secure` flag for all sensitive cookies to ensure they are only transmitted over HTTPS."),
    (lambda i, t: "cookie" in t and "httponly" not in t,
     "Set the `HttpOnly` flag for cookies where appropriate to prevent access via client-side scripts."),
    (lambda i, t: "anti-clickjacking header" in t,
     "Implement the `X-Frame-Options` header (e.g., `DENY` or `SAMEORIGIN`) or use the `frame-ancestors` "
     "directive in Content Security Policy (CSP) to prevent clickjacking."),
    (lambda i, t: "x-content-type-options" in t,
     "Set the `X-Content-Type-Options: nosniff` header to prevent browsers from MIME-sniffing the content-type "
     "away from the declared one."),
]
DEFAULT_RECOMMENDATION = (
    "Review the finding details and vendor documentation. Remediate according to security best practices "
    "and organizational policies."
)


def generate_recommendation(vuln_id: str, title: str) -> str:
    lower_id, lower_title = vuln_id.lower(), title.lower()
    for matches, text in RECOMMENDATIONS:
        if matches(lower_id, lower_title):
            return text
    return DEFAULT_RECOMMENDATION


def _split_id(content: str):
    for label in LABELLED_LINES:
        if content.startswith(label + ":"):
            return label, content[len(label) + 1:].strip()
    colon = content.find(":")
    if colon > 0:
        potential = content[:colon].strip()
        if ID_RE.match(potential) and len(potential) < 20:
            return potential, content[colon + 1:].strip()
    return "Info", content


def _finish(vuln: Dict[str, Any]) -> NiktoVulnerability:
    details = "\n".join(vuln["details"]).strip()
    return NiktoVulnerability(
        id=vuln["id"],
        title=vuln["title"],
        description=vuln["title"],
        severity=determine_severity(vuln["id"], vuln["title"]),
        cve=CVE_RE.findall(vuln["title"]),
        details=details or None,
        recommendation=generate_recommendation(vuln["id"], vuln["title"]),
    )


def parse_nikto_output(raw: str) -> List[NiktoVulnerability]:
    """Turn Nikto's text report into findings.

    Every ``+ `` line opens a finding. Indented or plain lines that follow are
    kept as details; ``-`` lines are Nikto's banner/summary and are skipped.
    """
    vulns: List[NiktoVulnerability] = []
    current: Optional[Dict[str, Any]] = None

    for line in (raw or "").splitlines():
        stripped = line.strip()
        if stripped.startswith("+ "):
            if current:
                vulns.append(_finish(current))
            vuln_id, title = _split_id(stripped[2:].strip())
            current = {"id": vuln_id, "title": title, "details": []}
        elif current and stripped and not stripped.startswith("-"):
            # keep indentation for URI listings
            current["details"].append(line.rstrip() if stripped.startswith("/") else stripped)

    if current:
        vulns.append(_finish(current))
    return vulns


def format_duration(seconds: Optional[int]) -> str:
    seconds = max(int(seconds or 0), 0)
    return f"{seconds // 60}m {seconds % 60}s"


def build_scan_result(target: str, port: int, data: Dict[str, Any]) -> NiktoScanResult:
    raw = data.get("result") or ""
    vulns = parse_nikto_output(raw)
    start = data.get("scan_start_datetime")
    end = data.get("scan_end_datetime")
    duration = (end - start) if isinstance(start, (int, float)) and isinstance(end, (int, float)) else 0
    server = next((v.title for v in vulns if v.id == "Server"), None)
    return NiktoScanResult(
        target=target,
        scan_date=parse_timestamp(start),
        scan_duration=format_duration(duration),
        target_server=server,
        target_port=port,
        total_vulnerabilities=sum(1 for v in vulns if v.severity != "info"),
        vulnerabilities=vulns,
        raw_result=raw,
        public_url=data.get("public_url"),
    )


def to_findings(result: NiktoScanResult) -> List[Finding]:
    return [
        Finding(
            source=SOURCE_NAME,
            title=v.title,
            summary=v.description,
            severity=v.severity,
            location=result.public_url,
            port=str(result.target_port),
            date=result.scan_date,
            identifier=v.id,
            cves=v.cve,
            recommendation=v.recommendation,
            details=v.details,
        )
        for v in result.vulnerabilities
    ]


async def scan(
    target: str,
    client: httpx.AsyncClient,
    port: int = 80,
    method: str = "simple",
    cancel_event: Optional[asyncio.Event] = None,
):
    """Run a Nikto scan to completion and return ``(job, NiktoScanResult)``."""
    classify_target(target)
    job_client = NiktoScanClient(
        client,
        settings.nikto_api_key,
        settings.nikto_base_url,
        settings.nikto_poll_attempts,
        settings.nikto_poll_interval,
        cancel_event=cancel_event,
    )
    job, data = await job_client.run(target, {"scan_method": method})
    result = build_scan_result(target, port, data)
    logger.info("nikto: %d potential vulnerabilities (excluding info) on %s", result.total_vulnerabilities, target)
    return job, result


async def run(target: str, client: httpx.AsyncClient, options: Optional[Dict[str, Any]] = None) -> SourceResult:
    options = options or {}
    start = time.perf_counter()
    job, result = await scan(
        target,
        client,
        port=options.get("port") or 80,
        method=options.get("scan_method") or "simple",
        cancel_event=options.get("cancel_event"),
    )
    return SourceResult(
        source=SOURCE_NAME,
        findings=to_findings(result),
        data=result.model_dump(mode="json", exclude={"vulnerabilities"}),
        job=job,
        duration_seconds=round(time.perf_counter() - start, 3),
    )

