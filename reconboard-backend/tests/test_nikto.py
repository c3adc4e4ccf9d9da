import asyncio

import httpx
import pytest

from reconboard.errors import RateLimitedError, UpstreamError
from reconboard.sources import nikto

NIKTO_OUTPUT = """- Nikto v2.1.6
---------------------------------------------------------------------------
+ Target IP:          93.184.216.34
+ Target Hostname:    example.com
+ Target Port:        80
+ Start Time:         2024-01-01 10:00:00 (GMT0)
---------------------------------------------------------------------------
+ Server: Apache/2.4.41 (Ubuntu)
+ The anti-clickjacking X-Frame-Options header is not present.
+ OSVDB-3233: /icons/README: Apache default file found.
+ /phpinfo.php: Output from the phpinfo() function was found. CVE-2021-1234 information disclosure
+ Apache/2.4.41 appears to be outdated (current is at least Apache/2.4.54).
+ OSVDB-877: HTTP TRACE method is active, suggesting the host is vulnerable to XST
    /trace.php
+ 7915 requests: 0 error(s) and 6 item(s) reported on remote host
"""


def by_title(vulns, fragment):
    return next(v for v in vulns if fragment in v.title)


def test_parse_output():
    vulns = nikto.parse_nikto_output(NIKTO_OUTPUT)
    assert len(vulns) == 11

    target_ip = vulns[0]
    assert (target_ip.id, target_ip.title, target_ip.severity) == ("Target IP", "93.184.216.34", "info")

    server = by_title(vulns, "Apache/2.4.41 (Ubuntu)")
    assert server.id == "Server"
    assert server.severity == "info"

    readme = by_title(vulns, "/icons/README")
    assert readme.id == "OSVDB-3233"
    assert readme.title == "/icons/README: Apache default file found."
    assert readme.severity == "medium"

    assert by_title(vulns, "anti-clickjacking").severity == "low"
    assert by_title(vulns, "outdated").severity == "high"

    phpinfo = by_title(vulns, "phpinfo")
    assert phpinfo.id == "Info"
    assert phpinfo.cve == ["CVE-2021-1234"]
    assert phpinfo.severity == "medium"

    trace = by_title(vulns, "TRACE")
    assert trace.details == "/trace.php"
    assert by_title(vulns, "reported on remote host").severity == "info"


@pytest.mark.parametrize("vuln_id,title,expected", [
    ("Info", "Possible remote code execution in upload handler", "critical"),
    ("CVE-2020-0001", "Some issue", "high"),
    ("Info", "Blind SQL injection in id parameter", "high"),
    ("Info", "Reflected XSS in q", "high"),
    ("Info", "Directory listing enabled on /files/", "medium"),
    ("Info", "Cookie sessionid created without the httponly flag", "low"),
    ("Server", "nginx", "info"),
    ("OSVDB-1", "Unusual file found", "medium"),
])
def test_determine_severity(vuln_id, title, expected):
    assert nikto.determine_severity(vuln_id, title) == expected


def test_recommendations():
    assert "parameterized queries" in nikto.generate_recommendation("Info", "SQL injection found")
    assert "autoindex off" in nikto.generate_recommendation("Info", "Directory listing enabled")
    assert nikto.generate_recommendation("Info", "Something odd") == nikto.DEFAULT_RECOMMENDATION


def test_build_scan_result():
    result = nikto.build_scan_result("example.com", 8080, {
        "result": NIKTO_OUTPUT,
        "scan_start_datetime": 1700000000,
        "scan_end_datetime": 1700000125,
        "public_url": "https://nikto.online/r/abc",
    })
    assert result.scan_duration == "2m 5s"
    assert result.target_server == "Apache/2.4.41 (Ubuntu)"
    assert result.target_port == 8080
    assert result.total_vulnerabilities == 5
    assert result.scan_date.year == 2023
    assert result.public_url == "https://nikto.online/r/abc"


def nikto_api(statuses=("Running", "Finished"), add_scan=None):
    calls = {"add_scan": 0, "check_scan_status": 0, "scan_result": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        endpoint = request.url.path.rsplit("/", 1)[-1]
        calls[endpoint] += 1
        assert request.headers["NIKTO-API-KEY"] == "nikto-key"
        if endpoint == "add_scan":
            assert b'name="host"' in request.content
            return add_scan or httpx.Response(200, json={"status_code": 201, "scan_id": "n-1", "scan_datetime": 1700000000})
        if endpoint == "check_scan_status":
            idx = min(calls[endpoint], len(statuses)) - 1
            return httpx.Response(200, json={"status_code": 200, "scan_id": "n-1", "scan_status": statuses[idx]})
        return httpx.Response(200, json={
            "status_code": 200,
            "scan_id": "n-1",
            "scan_start_datetime": 1700000000,
            "scan_end_datetime": 1700000061,
            "result": NIKTO_OUTPUT,
            "public_url": "https://nikto.online/r/n-1",
        })

    return handler, calls


def test_full_scan(make_client):
    handler, calls = nikto_api()

    async def go():
        async with make_client(handler) as client:
            return await nikto.run("example.com", client, {"port": 443})

    res = asyncio.run(go())
    assert res.source == "nikto"
    assert res.status == "ok"
    assert res.job.scan_id == "n-1"
    assert res.data["scan_duration"] == "1m 1s"
    assert res.data["total_vulnerabilities"] == 5
    assert all(f.port == "443" for f in res.findings)
    assert calls == {"add_scan": 1, "check_scan_status": 2, "scan_result": 1}


def test_creation_rejected(make_client):
    handler, _ = nikto_api(add_scan=httpx.Response(200, json={"status_code": 403, "scan_id": ""}))

    async def go():
        async with make_client(handler) as client:
            return await nikto.scan("example.com", client)

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(go())
    assert exc.value.message == "Scan creation failed: API Status 403"


def test_rate_limited_on_submit(make_client):
    handler, calls = nikto_api(add_scan=httpx.Response(429, headers={"x-limited-for": "30s"}))

    async def go():
        async with make_client(handler) as client:
            return await nikto.scan("example.com", client)

    with pytest.raises(RateLimitedError):
        asyncio.run(go())
    assert calls["check_scan_status"] == 0


def test_non_object_add_scan_body(make_client):
    handler, calls = nikto_api(add_scan=httpx.Response(200, json=["unexpected"]))

    async def go():
        async with make_client(handler) as client:
            return await nikto.scan("example.com", client)

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(go())
    assert exc.value.message == "Failed to parse Nikto add_scan response: expected a JSON object"
    assert calls["check_scan_status"] == 0


def test_non_object_scan_result_body(make_client):
    inner, _ = nikto_api(statuses=("Finished",))

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("scan_result"):
            return httpx.Response(200, content=b"null")
        return inner(request)

    async def go():
        async with make_client(handler) as client:
            return await nikto.scan("example.com", client)

    with pytest.raises(UpstreamError) as exc:
        asyncio.run(go())
    assert exc.value.status_code == 502
    assert "scan_result" in exc.value.message
