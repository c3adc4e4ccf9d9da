# reconboard/sources/portscanner.py
SOURCE_NAME = "portscanner"
TARGET_TYPES = ("ip", "domain")

import asyncio
import logging
import re
import time
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import UpstreamError
from ..models import Finding, OpenPort, PortScanResult, SourceResult, now_utc
from ..polling import ScanJobClient
from ..targets import classify_target
from ..upstream import api_error_message, raise_for_rate_limit

logger = logging.getLogger(__name__)

# nmap style: "22/tcp   open  ssh     OpenSSH 8.2p1 Ubuntu"
PORT_LINE_RE = re.compile(
    r"^\s*(?P<port>\d{1,5})/(?P<proto>tcp|udp)\s+(?P<state>open(?:\|filtered)?)\s*(?P<service>\S+)?\s*(?P<version>.*?)\s*$"
)

# port -> (label, severity, remediation)
PORT_RISK = {
    3389: ("RDP (Remote Desktop)", "critical", "Block RDP from the internet; use a VPN or NLA with IP allowlisting."),
    5900: ("VNC", "critical", "Block VNC from the internet; tunnel it over SSH or a VPN."),
    2375: ("Docker API", "critical", "Never expose the Docker daemon socket; bind it to localhost or use TLS client auth."),
    3306: ("MySQL", "critical", "Restrict database ports to application hosts with firewall rules."),
    5432: ("PostgreSQL", "critical", "Restrict database ports to application hosts with firewall rules."),
    1433: ("Microsoft SQL Server", "critical", "Restrict database ports to application hosts with firewall rules."),
    27017: ("MongoDB", "critical", "Enable authentication and bind MongoDB to private interfaces only."),
    9200: ("Elasticsearch", "critical", "Put Elasticsearch behind authentication and a private network."),
    23: ("Telnet", "high", "Disable Telnet and use SSH instead."),
    21: ("FTP", "high", "Replace FTP with SFTP/FTPS or restrict it to trusted networks."),
    445: ("SMB", "high", "Block SMB at the perimeter."),
    139: ("NetBIOS", "high", "Block NetBIOS at the perimeter."),
    6379: ("Redis", "high", "Require authentication and bind Redis to private interfaces."),
    11211: ("Memcached", "high", "Bind Memcached to localhost and disable UDP."),
    22: ("SSH", "medium", "Use key-based authentication only and restrict source addresses where possible."),
    25: ("SMTP", "medium", "Make sure the mail server is not an open relay."),
    53: ("DNS", "medium", "Disable recursion for external clients."),
    80: ("HTTP", "info", "Redirect plain HTTP to HTTPS."),
    443: ("HTTPS", "info", None),
    8080: ("HTTP alternate", "low", "Confirm the alternate web service is meant to be public."),
    8443: ("HTTPS alternate", "low", "Confirm the alternate web service is meant to be public."),
}


def _form(**fields) -> Dict[str, Any]:
    return {k: (None, str(v)) for k, v in fields.items()}


class PortScanClient(ScanJobClient):
    provider = "Port scanner"
    api_key_header = "PORTSCANNER-API-KEY"

    async def submit(self, target: str, options: Dict[str, Any]) -> str:
        resp = await self.client.post(
            self.url("start_scan"),
            headers=self.headers,
            files=_form(target=target, command=options.get("command") or "simple"),
        )
        raise_for_rate_limit(resp)
        # the API answers 201 Created, anything else is a failure
        if resp.status_code != 201:
            msg = api_error_message(resp)
            logger.error("Failed to start port scan for %s: %s", target, msg)
            raise UpstreamError(f"Failed to start scan: {msg}", resp.status_code)
        try:
            data = resp.json()
        except ValueError:
            data = {}
        scan_id = data.get("scan_id") if isinstance(data, dict) else None
        if not scan_id:
            raise UpstreamError("API did not return a scan ID after starting the scan.")
        return scan_id

    async def check_status(self, scan_id: str) -> httpx.Response:
        # status endpoint wants urlencoded, the others multipart
        return await self.client.post(self.url("check_scan_status"), headers=self.headers, data={"scan_id": scan_id})

    async def fetch_result(self, scan_id: str) -> Dict[str, Any]:
        resp = await self.client.post(self.url("scan_result"), headers=self.headers, files=_form(scan_id=scan_id))
        raise_for_rate_limit(resp)
        if not resp.is_success:
            msg = api_error_message(resp)
            raise UpstreamError(f"Scan completed, but failed to fetch results: {msg}", resp.status_code)
        try:
            data = resp.json()
        except ValueError:
            raise UpstreamError("Scan completed, but failed to parse the results JSON.")
        return data if isinstance(data, dict) else {}


def parse_port_output(raw: str) -> List[OpenPort]:
    ports: List[OpenPort] = []
    seen = set()
    for line in (raw or "").splitlines():
        m = PORT_LINE_RE.match(line)
        if not m:
            continue
        key = (int(m.group("port")), m.group("proto"))
        if key in seen:
            continue
        seen.add(key)
        ports.append(OpenPort(
            port=key[0],
            protocol=key[1],
            state=m.group("state"),
            service=m.group("service") or None,
            version=m.group("version") or None,
        ))
    return ports


def port_finding(target: str, op: OpenPort, when=None) -> Finding:
    label, severity, remediation = PORT_RISK.get(op.port, (op.service or "Unknown service", "low", None))
    summary = " ".join(p for p in (op.service, op.version) if p) or f"{op.protocol} port {op.state}"
    return Finding(
        source=SOURCE_NAME,
        title=f"{label} exposed on {op.port}/{op.protocol}",
        summary=summary,
        severity=severity,
        location=target,
        port=str(op.port),
        date=when,
        identifier=f"{op.port}/{op.protocol}",
        recommendation=remediation,
    )


async def scan(
    target: str,
    client: httpx.AsyncClient,
    command: str = "simple",
    cancel_event: Optional[asyncio.Event] = None,
):
    """Run a port scan to completion and return ``(job, PortScanResult)``."""
    scan_date = now_utc()
    classify_target(target)
    job_client = PortScanClient(
        client,
        settings.portscanner_api_key,
        settings.portscanner_base_url,
        settings.portscanner_poll_attempts,
        settings.portscanner_poll_interval,
        cancel_event=cancel_event,
    )
    job, data = await job_client.run(target, {"command": command})
    raw = data.get("result") or ""
    result = PortScanResult(
        target=target,
        scan_date=scan_date,
        scan_id=job.scan_id,
        scan_command=data.get("scan_command"),
        raw_result=raw,
        open_ports=parse_port_output(raw),
    )
    return job, result


async def run(target: str, client: httpx.AsyncClient, options: Optional[Dict[str, Any]] = None) -> SourceResult:
    options = options or {}
    start = time.perf_counter()
    job, result = await scan(target, client, cancel_event=options.get("cancel_event"))
    findings = [port_finding(target, op, result.scan_date) for op in result.open_ports]
    logger.info("portscanner: %d open ports on %s", len(findings), target)
    return SourceResult(
        source=SOURCE_NAME,
        findings=findings,
        data=result.model_dump(mode="json"),
        job=job,
        duration_seconds=round(time.perf_counter() - start, 3),
    )
