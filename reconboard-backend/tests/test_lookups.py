import asyncio

import httpx
import pytest

from reconboard.config import settings
from reconboard.errors import ApiKeyMissingError, RateLimitedError, UpstreamError
from reconboard.sources import leakix, shodan

SHODAN_HOST = {
    "ip_str": "93.184.216.34",
    "ports": [80, 443],
    "hostnames": ["example.com"],
    "org": "Edgecast",
    "isp": "Verizon",
    "os": None,
    "city": "Norwell",
    "country_name": "United States",
    "vulns": ["CVE-2021-41773", "CVE-2019-0211"],
    "last_update": "2024-03-01T12:00:00.000000",
    "data": [
        {
            "port": 80,
            "transport": "tcp",
            "product": "Apache httpd",
            "version": "2.4.49",
            "cpe": ["cpe:/a:apache:http_server:2.4.49"],
            "timestamp": "2024-02-28T08:00:00.000000",
            "vulns": {
                "CVE-2021-41773": {"verified": True, "cvss": 7.5, "summary": "Path traversal"},
            },
        },
        {"port": 443, "transport": "tcp"},
    ],
}

SHODAN_DNS = {
    "domain": "example.com",
    "subdomains": ["www", "mail"],
    "data": [
        {"subdomain": "www", "type": "A", "value": "93.184.216.34", "last_seen": "2024-03-01T00:00:00"},
        {"subdomain": "", "type": "MX", "value": "mail.example.com", "last_seen": "bogus"},
    ],
}

LEAKIX_DOMAIN = {
    "Services": [
        {
            "event_type": "service",
            "ip": "93.184.216.34",
            "host": "www.example.com",
            "port": "443",
            "protocol": "https",
            "summary": "HTTP/1.1 200 OK",
            "time": "2024-02-01T10:00:00Z",
            "http": {"title": "Example Domain", "header": {"server": "ECS"}},
            "ssl": {
                "version": "TLSv1.3",
                "certificate": {"not_after": "2025-01-01T00:00:00Z", "issuer_name": "DigiCert"},
            },
            "service": {"software": {"name": "nginx", "version": "1.18.0"}},
            "geoip": {"city_name": "Norwell", "country_name": "United States"},
            "network": {"organization_name": "Edgecast"},
        },
        {"ip": "93.184.216.35", "port": "22", "time": "not a date", "service": {}},
    ],
    "Leaks": [
        {
            "event_type": "leak",
            "ip": "93.184.216.36",
            "host": "db.example.com",
            "port": "9200",
            "summary": "Open Elasticsearch with 3 indices",
            "time": "2024-02-02T10:00:00Z",
            "leak": {"stage": "open", "severity": "critical", "dataset": {"rows": 1000, "files": 0, "size": 2048}},
        },
    ],
}


def serve(status=200, body=None, headers=None):
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(status, json=body, headers=headers)

    return handler, seen


def call(make_client, handler, fn, *args):
    async def go():
        async with make_client(handler) as client:
            return await fn(*args, client)
    return asyncio.run(go())


# ---------- shodan ----------

def test_shodan_host_findings():
    findings = shodan.normalize_host(SHODAN_HOST)
    titles = [f.title for f in findings]
    assert "Apache httpd on 80/tcp" in titles
    assert "Unknown service on 443/tcp" in titles

    service_cve = next(f for f in findings if f.identifier == "CVE-2021-41773")
    assert service_cve.severity == "high"
    assert service_cve.summary == "Path traversal"
    assert service_cve.port == "80"

    # host-level CVE not tied to a service is still reported, once
    host_cves = [f for f in findings if f.identifier == "CVE-2019-0211"]
    assert len(host_cves) == 1
    assert len([f for f in findings if f.identifier == "CVE-2021-41773"]) == 1
    assert all(f.location == "Norwell, United States" for f in findings)


def test_shodan_dns_findings():
    findings = shodan.normalize_dns(SHODAN_DNS)
    assert [f.title for f in findings] == ["www.example.com", "example.com"]
    assert findings[0].summary == "A 93.184.216.34"
    assert findings[0].date.year == 2024
    assert findings[1].date is None


def test_shodan_ip_uses_host_endpoint(make_client):
    handler, seen = serve(body=SHODAN_HOST)
    res = call(make_client, handler, shodan.run, "93.184.216.34")
    assert seen[0].url.path == "/shodan/host/93.184.216.34"
    assert seen[0].url.params["key"] == "shodan-key"
    assert res.data["org"] == "Edgecast"
    assert res.findings


def test_shodan_domain_uses_dns_endpoint(make_client):
    handler, seen = serve(body=SHODAN_DNS)
    res = call(make_client, handler, shodan.run, "example.com")
    assert seen[0].url.path == "/dns/domain/example.com"
    assert res.data["subdomains"] == ["www", "mail"]


def test_shodan_not_found(make_client):
    handler, _ = serve(status=404, body={"error": "No information available"})
    with pytest.raises(UpstreamError) as exc:
        call(make_client, handler, shodan.run, "93.184.216.34")
    assert exc.value.message == "Resource not found"


def test_shodan_requires_key(make_client, monkeypatch):
    monkeypatch.setattr(settings, "shodan_api_key", None)
    handler, seen = serve(body=SHODAN_HOST)
    with pytest.raises(ApiKeyMissingError):
        call(make_client, handler, shodan.run, "93.184.216.34")
    assert seen == []


# ---------- leakix ----------

def test_leakix_normalize():
    findings = leakix.normalize(LEAKIX_DOMAIN)
    assert len(findings) == 3
    service, bare, leak = findings

    assert service.title == "Example Domain"
    assert service.severity == "info"
    assert service.location == "Norwell, United States"
    assert "nginx 1.18.0" in service.details
    assert "DigiCert" in service.details

    assert bare.title == "Unknown Service"
    assert bare.date is None
    assert "Unknown Unknown" in bare.details

    assert leak.title == "db.example.com"
    assert leak.severity == "critical"
    assert leak.port == "9200"


def test_leakix_lookup_picks_endpoint(make_client):
    handler, seen = serve(body=LEAKIX_DOMAIN)
    res = call(make_client, handler, leakix.run, "example.com")
    assert seen[0].url.path == "/domain/example.com"
    assert seen[0].headers["api-key"] == "leakix-key"
    assert len(res.data["services"]) == 2
    assert res.data["leaks"][0]["dataset"]["rows"] == 1000

    handler, seen = serve(body={"Services": [], "Leaks": None})
    call(make_client, handler, leakix.run, "1.1.1.1")
    assert seen[0].url.path == "/host/1.1.1.1"


def test_leakix_nothing_indexed(make_client):
    handler, _ = serve(status=404, body={"Error": "Not found"})
    res = call(make_client, handler, leakix.run, "example.com")
    assert res.findings == []


def test_leakix_rate_limited(make_client):
    handler, _ = serve(status=429, body={}, headers={"x-limited-for": "1m0s"})
    with pytest.raises(RateLimitedError) as exc:
        call(make_client, handler, leakix.run, "example.com")
    assert exc.value.message == "Rate limited. Please wait 1m0s before trying again."


def test_leakix_search(make_client):
    handler, seen = serve(body=[{"summary": "leak"}])
    results = call(make_client, handler, leakix.search, "example.com")
    assert results == [{"summary": "leak"}]
    assert seen[0].url.params["scope"] == "leak"
    assert seen[0].url.params["q"] == "example.com"
