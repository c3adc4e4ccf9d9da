# reconboard/scan_core.py
import asyncio
import importlib
import logging
import pkgutil
import time
from typing import Any, Dict, List, Optional

from .config import settings
from .errors import ScanCancelledError, SourceError, describe_error
from .models import ScanReport, ScanRequest, SourceResult, now_utc
from .normalize import count_severities, sort_findings
from .targets import classify_target
from .upstream import new_client

logger = logging.getLogger(__name__)


def discover_sources() -> Dict[str, object]:
    sources = {}
    try:
        import reconboard.sources as sources_pkg
    except ImportError as e:
        logger.exception("Failed to import reconboard.sources package: %s", e)
        return sources

    for finder, name, ispkg in pkgutil.iter_modules(sources_pkg.__path__):
        try:
            module = importlib.import_module(f"reconboard.sources.{name}")
        except Exception as e:
            logger.exception("Failed to import source module %s: %s", name, e)
            continue
        if hasattr(module, "SOURCE_NAME") and hasattr(module, "run"):
            sources[module.SOURCE_NAME] = module
    return sources


def available_sources() -> List[str]:
    return sorted(discover_sources().keys())


async def run_selected_sources(
    target: str,
    selected: Optional[List[str]] = None,
    options: Optional[Dict[str, Any]] = None,
    concurrency: Optional[int] = None,
    client=None,
    on_result=None,
) -> List[SourceResult]:
    """Run the chosen sources against one target and collect one result per source.

    A source that raises never takes the others down: its error becomes that
    source's ``SourceResult``. Only task cancellation propagates.
    ``on_result`` is called with each result as soon as its source finishes.
    """
    options = dict(options or {})
    target_type = options.setdefault("target_type", classify_target(target))
    sources = discover_sources()

    names = list(selected) if selected else sorted(sources)
    results: Dict[str, SourceResult] = {}
    modules = []
    for name in dict.fromkeys(names):
        mod = sources.get(name)
        if mod is None:
            results[name] = SourceResult(source=name, status="skipped", error=f"Unknown source: {name}")
        elif target_type not in getattr(mod, "TARGET_TYPES", ("ip", "domain")):
            results[name] = SourceResult(source=name, status="skipped", error=f"{name} does not support {target_type} targets")
        else:
            modules.append(mod)

    semaphore = asyncio.Semaphore(concurrency or settings.source_concurrency)

    async def run_source(mod, http_client):
        name = mod.SOURCE_NAME
        start = time.perf_counter()
        async with semaphore:
            try:
                res = await mod.run(target, http_client, options)
            except asyncio.CancelledError:
                raise
            except ScanCancelledError as e:
                logger.info("%s cancelled for %s", name, target)
                res = SourceResult(source=name, status="cancelled", error=e.message)
            except SourceError as e:
                logger.warning("%s failed for %s: %s", name, target, e.message)
                res = SourceResult(source=name, status="error", error=e.message)
            except Exception as e:
                logger.exception("Error running %s for %s", name, target)
                res = SourceResult(source=name, status="error", error=f"Error running {name}: {describe_error(e)}")
        if not res.duration_seconds:
            res.duration_seconds = round(time.perf_counter() - start, 3)
        results[name] = res
        if on_result is not None:
            on_result(res)

    if client is not None:
        await asyncio.gather(*(run_source(m, client) for m in modules))
    else:
        async with new_client() as http_client:
            await asyncio.gather(*(run_source(m, http_client) for m in modules))

    # keep the caller's ordering
    return [results[name] for name in dict.fromkeys(names)]


def build_report(scan_id: str, target: str, results: List[SourceResult], status: str = "done") -> ScanReport:
    findings = [f for r in results for f in r.findings]
    for r in results:
        r.findings = sort_findings(r.findings)
    counts = count_severities(findings)
    return ScanReport(
        scan_id=scan_id,
        target=target,
        target_type=classify_target(target),
        status=status,
        finished_at=now_utc(),
        sources=results,
        severity_counts=counts,
        total_findings=len(findings),
    )


async def run_report_scan(scan_id: str, request: ScanRequest, store: dict, client=None) -> None:
    """Background task: run every requested source and write the report into the store."""
    entry = store[scan_id]
    cancel_event = entry.get("cancel_event")
    options = {
        "port": request.port,
        "scan_method": request.scan_method,
        "cancel_event": cancel_event,
    }
    try:
        results = await run_selected_sources(
            request.target, request.sources, options, client=client, on_result=entry.setdefault("partial", []).append,
        )
    except SourceError as e:
        # only an invalid target gets here; sources handle their own errors
        logger.warning("Report scan %s rejected: %s", scan_id, e.message)
        entry["status"] = "error"
        entry["error"] = e.message
        return

    status = "cancelled" if any(r.status == "cancelled" for r in results) else "done"
    report = build_report(scan_id, request.target, results, status=status)
    report.created_at = entry.get("created_at", report.created_at)
    entry["report"] = report
    entry["status"] = status
    logger.info("Report scan %s %s: %d findings from %d sources",
                scan_id, status, report.total_findings, len(results))
