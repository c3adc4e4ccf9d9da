# reconboard/sources/leakix.py
SOURCE_NAME = "leakix"
TARGET_TYPES = ("ip", "domain")

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from ..config import settings
from ..errors import ApiKeyMissingError
from ..models import Finding, SourceResult
from ..normalize import format_location, parse_timestamp
from ..targets import classify_target
from ..upstream import check_response, json_body

logger = logging.getLogger(__name__)


def _api_key(api_key: Optional[str]) -> str:
    key = api_key or settings.leakix_api_key
    if not key:
        raise ApiKeyMissingError("LeakIX")
    return key


def _headers(key: str) -> Dict[str, str]:
    return {"accept": "application/json", "api-key": key}


def _url(path: str) -> str:
    return f"{settings.leakix_base_url.rstrip('/')}/{path}"


async def lookup(target: str, client: httpx.AsyncClient, api_key: Optional[str] = None) -> Dict[str, Any]:
    """Services and leaks LeakIX has indexed for a host or domain."""
    key = _api_key(api_key)
    endpoint = "host" if classify_target(target) == "ip" else "domain"
    resp = await client.get(_url(f"{endpoint}/{target}"), headers=_headers(key))
    if resp.status_code == 404:
        # LeakIX answers 404 when it has nothing indexed
        return {"Services": [], "Leaks": []}
    check_response(resp)
    data = json_body(resp, "LeakIX")
    return data if isinstance(data, dict) else {}


async def search(query: str, client: httpx.AsyncClient, api_key: Optional[str] = None,
                 scope: str = "leak", page: int = 0) -> Any:
    key = _api_key(api_key)
    resp = await client.get(
        _url("search"),
        params={"scope": scope, "page": page, "q": query},
        headers=_headers(key),
    )
    check_response(resp)
    return json_body(resp, "LeakIX search")


def _software(service: Dict[str, Any]) -> Dict[str, str]:
    software = ((service.get("service") or {}).get("software")) or {}
    return {
        "name": software.get("name") or "Unknown",
        "version": software.get("version") or "Unknown",
    }


def _ssl(service: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    ssl = service.get("ssl")
    if not ssl:
        return None
    cert = ssl.get("certificate") or {}
    return {
        "version": ssl.get("version"),
        "valid_until": cert.get("not_after"),
        "issuer": cert.get("issuer_name"),
    }


def format_service(service: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "host": service.get("host"),
        "ip": service.get("ip"),
        "port": service.get("port"),
        "protocol": service.get("protocol"),
        "summary": service.get("summary") or "",
        "last_seen": service.get("time"),
        "software": _software(service),
        "ssl": _ssl(service),
        "location": format_location(service.get("geoip")),
        "organization": (service.get("network") or {}).get("organization_name"),
        "title": ((service.get("http") or {}).get("title")) or service.get("host") or "Unknown Service",
    }


def format_leak(leak: Dict[str, Any]) -> Dict[str, Any]:
    info = leak.get("leak") or {}
    return {
        "title": ((leak.get("http") or {}).get("title")) or leak.get("host") or "Unknown Leak",
        "summary": leak.get("summary") or "",
        "date": leak.get("time"),
        "severity": info.get("severity") or "medium",
        "stage": info.get("stage"),
        "dataset": info.get("dataset") or {},
        "location": format_location(leak.get("geoip")),
        "ip": leak.get("ip"),
        "port": leak.get("port"),
        "event_type": leak.get("event_type"),
    }


def normalize(data: Dict[str, Any]) -> List[Finding]:
    findings: List[Finding] = []
    for service in data.get("Services") or []:
        s = format_service(service)
        details = [f"software: {s['software']['name']} {s['software']['version']}"]
        if s["ssl"]:
            details.append(f"ssl: {s['ssl']['version']} valid until {s['ssl']['valid_until']} issued by {s['ssl']['issuer']}")
        if s["organization"]:
            details.append(f"organization: {s['organization']}")
        findings.append(Finding(
            source=SOURCE_NAME,
            title=s["title"],
            summary=s["summary"],
            severity="info",
            location=s["location"],
            ip=s["ip"],
            port=str(s["port"]) if s["port"] is not None else None,
            date=parse_timestamp(s["last_seen"]),
            identifier=s["protocol"],
            details="\n".join(details),
        ))
    for leak in data.get("Leaks") or []:
        l = format_leak(leak)
        findings.append(Finding(
            source=SOURCE_NAME,
            title=l["title"],
            summary=l["summary"],
            severity=l["severity"],
            location=l["location"],
            ip=l["ip"],
            port=str(l["port"]) if l["port"] is not None else None,
            date=parse_timestamp(l["date"]),
            identifier=l["event_type"],
        ))
    return findings


async def run(target: str, client: httpx.AsyncClient, options: Optional[Dict[str, Any]] = None) -> SourceResult:
    start = time.perf_counter()
    data = await lookup(target, client)
    findings = normalize(data)
    logger.info("leakix: %d findings for %s", len(findings), target)
    return SourceResult(
        source=SOURCE_NAME,
        findings=findings,
        data={
            "services": [format_service(s) for s in data.get("Services") or []],
            "leaks": [format_leak(l) for l in data.get("Leaks") or []],
        },
        duration_seconds=round(time.perf_counter() - start, 3),
    )
