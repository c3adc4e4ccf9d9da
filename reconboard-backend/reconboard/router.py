# reconboard/router.py
from typing import AsyncIterator

import httpx
from fastapi import APIRouter, BackgroundTasks, Depends, Query

from .auth import require_session
from .models import (
    LeakixLookupResponse,
    NiktoRequest,
    NiktoScanResponse,
    PortScanResponse,
    ScanReport,
    ScanRequest,
    ScanStatus,
    ShodanResponse,
    TargetRequest,
)
from .scan_core import available_sources, run_report_scan
from .sources import leakix, nikto, portscanner, shodan
from .store import cancel_job, create_job, get_results, get_status, store
from .targets import classify_target
from .upstream import new_client


async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    async with new_client() as client:
        yield client


router = APIRouter(prefix="/scan", tags=["scan"], dependencies=[Depends(require_session)])


@router.post("/report", response_model=ScanStatus)
async def report_scan(request: ScanRequest, background_tasks: BackgroundTasks):
    classify_target(request.target)
    scan_id = create_job(request)
    background_tasks.add_task(run_report_scan, scan_id, request, store)
    return {"scan_id": scan_id, "status": "in_progress"}


@router.get("/available")
async def list_available_sources():
    return {"available": available_sources()}


@router.get("/{scan_id}/status", response_model=ScanStatus)
async def check_status(scan_id: str):
    return get_status(scan_id)


@router.get("/{scan_id}/results", response_model=ScanReport)
async def check_results(scan_id: str):
    return get_results(scan_id)


@router.post("/{scan_id}/cancel", response_model=ScanStatus)
async def cancel_scan(scan_id: str):
    return cancel_job(scan_id)


api_router = APIRouter(prefix="/api", tags=["sources"], dependencies=[Depends(require_session)])


@api_router.get("/shodan", response_model=ShodanResponse)
async def shodan_lookup(q: str = Query(..., min_length=1), client: httpx.AsyncClient = Depends(http_client)):
    q = q.strip()
    data = await shodan.lookup(q, client)
    host, dns = data.get("host"), data.get("dns")
    findings = shodan.normalize_host(host) if host is not None else shodan.normalize_dns(dns or {})
    return ShodanResponse(host_data=host, dns_data=dns, findings=findings)


@api_router.get("/leakix")
async def leakix_search(q: str = Query(..., min_length=1), client: httpx.AsyncClient = Depends(http_client)):
    return {"results": await leakix.search(q, client)}


@api_router.get("/leakix/lookup", response_model=LeakixLookupResponse)
async def leakix_lookup(q: str = Query(..., min_length=1), client: httpx.AsyncClient = Depends(http_client)):
    data = await leakix.lookup(q.strip(), client)
    return LeakixLookupResponse(
        formatted_results=leakix.normalize(data),
        services=[leakix.format_service(s) for s in data.get("Services") or []],
        leaks=[leakix.format_leak(l) for l in data.get("Leaks") or []],
    )


@api_router.post("/portscan", response_model=PortScanResponse)
async def portscan(request: TargetRequest, client: httpx.AsyncClient = Depends(http_client)):
    job, result = await portscanner.scan(request.target.strip(), client)
    return PortScanResponse(**result.model_dump())


@api_router.post("/nikto", response_model=NiktoScanResponse)
async def nikto_scan(request: NiktoRequest, client: httpx.AsyncClient = Depends(http_client)):
    job, result = await nikto.scan(request.target.strip(), client, port=request.port, method=request.scan_method)
    return NiktoScanResponse(scan_id=job.scan_id, scan_result=result)
