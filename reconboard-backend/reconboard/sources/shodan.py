# reconboard/sources/shodan.py
SOURCE_NAME = "shodan"
TARGET_TYPES = ("ip", "domain")

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import ApiKeyMissingError
from ..models import Finding, SourceResult
from ..normalize import cvss_severity, format_location, parse_timestamp
from ..targets import classify_target
from ..upstream import check_response, json_body

logger = logging.getLogger(__name__)


async def _get(client: httpx.AsyncClient, path: str, api_key: str) -> Dict[str, Any]:
    url = f"{settings.shodan_base_url.rstrip('/')}/{path}"
    resp = await client.get(url, params={"key": api_key})
    check_response(resp, not_found="Resource not found")
    return json_body(resp, "Shodan")


async def lookup(target: str, client: httpx.AsyncClient, api_key: Optional[str] = None) -> Dict[str, Any]:
    """Host lookup for an IP, DNS lookup for a domain."""
    key = api_key or settings.shodan_api_key
    if not key:
        raise ApiKeyMissingError("Shodan")
    kind = classify_target(target)
    if kind == "ip":
        return {"host": await _get(client, f"shodan/host/{target}", key)}
    return {"dns": await _get(client, f"dns/domain/{target}", key)}


def normalize_host(host: Dict[str, Any]) -> List[Finding]:
    findings: List[Finding] = []
    ip = host.get("ip_str")
    location = format_location(host, city_key="city", country_key="country_name")
    updated = parse_timestamp(host.get("last_update"))
    seen_cves = set()

    for service in host.get("data") or []:
        port = service.get("port")
        transport = service.get("transport") or "tcp"
        product = service.get("product") or "Unknown service"
        version = service.get("version") or ""
        findings.append(Finding(
            source=SOURCE_NAME,
            title=f"{product} on {port}/{transport}",
            summary=f"{product} {version}".strip(),
            severity="info",
            location=location,
            ip=ip,
            port=str(port) if port is not None else None,
            date=parse_timestamp(service.get("timestamp")) or updated,
            identifier=", ".join(service.get("cpe") or []) or None,
        ))
        for cve, info in (service.get("vulns") or {}).items():
            info = info or {}
            seen_cves.add(cve)
            findings.append(Finding(
                source=SOURCE_NAME,
                title=f"{cve} on {product} ({port}/{transport})",
                summary=info.get("summary") or "",
                severity=cvss_severity(info.get("cvss")),
                location=location,
                ip=ip,
                port=str(port) if port is not None else None,
                date=updated,
                identifier=cve,
                cves=[cve],
                details="verified" if info.get("verified") else None,
            ))

    for cve in host.get("vulns") or []:
        if cve in seen_cves:
            continue
        findings.append(Finding(
            source=SOURCE_NAME,
            title=cve,
            summary="Vulnerability reported for host",
            severity="high",
            location=location,
            ip=ip,
            date=updated,
            identifier=cve,
            cves=[cve],
        ))
    return findings


def normalize_dns(dns: Dict[str, Any]) -> List[Finding]:
    domain = dns.get("domain") or ""
    findings: List[Finding] = []
    for record in dns.get("data") or []:
        sub = record.get("subdomain") or ""
        name = f"{sub}.{domain}" if sub else domain
        findings.append(Finding(
            source=SOURCE_NAME,
            title=name,
            summary=f"{record.get('type', '')} {record.get('value', '')}".strip(),
            severity="info",
            date=parse_timestamp(record.get("last_seen")),
            identifier=record.get("type"),
        ))
    return findings


def summarize(data: Dict[str, Any]) -> Dict[str, Any]:
    host = data.get("host")
    if host is not None:
        return {
            "ip": host.get("ip_str"),
            "ports": host.get("ports") or [],
            "hostnames": host.get("hostnames") or [],
            "domains": host.get("domains") or [],
            "org": host.get("org"),
            "isp": host.get("isp"),
            "os": host.get("os"),
            "country": host.get("country_name"),
            "vulns": host.get("vulns") or [],
            "last_update": host.get("last_update"),
        }
    dns = data.get("dns") or {}
    return {
        "domain": dns.get("domain"),
        "tags": dns.get("tags") or [],
        "subdomains": dns.get("subdomains") or [],
        "records": dns.get("data") or [],
        "more": bool(dns.get("more")),
    }


async def run(target: str, client: httpx.AsyncClient, options: Optional[Dict[str, Any]] = None) -> SourceResult:
    start = time.perf_counter()
    data = await lookup(target, client)
    if "host" in data:
        findings = normalize_host(data["host"])
    else:
        findings = normalize_dns(data["dns"])
    logger.info("shodan: %d findings for %s", len(findings), target)
    return SourceResult(
        source=SOURCE_NAME,
        findings=findings,
        data=summarize(data),
        duration_seconds=round(time.perf_counter() - start, 3),
    )
