# reconboard/normalize.py
"""Helpers shared by the per-source normalizers."""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from .models import SEVERITY_ORDER, Finding

logger = logging.getLogger(__name__)


def parse_timestamp(value: Union[str, int, float, None]) -> Optional[datetime]:
    """Parse ISO strings and unix timestamps; anything unreadable becomes None."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    text = str(value).strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable timestamp %r", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_location(geo: Optional[Dict[str, Any]], city_key: str = "city_name",
                    country_key: str = "country_name") -> Optional[str]:
    if not geo:
        return None
    parts = [geo.get(city_key), geo.get(country_key)]
    parts = [str(p).strip() for p in parts if p]
    return ", ".join(parts) or None


def cvss_severity(score: Optional[float]) -> str:
    if score is None:
        return "high"
    try:
        score = float(score)
    except (TypeError, ValueError):
        return "high"
    if score >= 9.0:
        return "critical"
    if score >= 7.0:
        return "high"
    if score >= 4.0:
        return "medium"
    return "low"


def severity_rank(severity: str) -> int:
    try:
        return SEVERITY_ORDER.index(severity)
    except ValueError:
        return len(SEVERITY_ORDER)


def sort_findings(findings: List[Finding]) -> List[Finding]:
    return sorted(findings, key=lambda f: (severity_rank(f.severity), f.source, f.title))


def count_severities(findings: List[Finding]) -> Dict[str, int]:
    counts = {s: 0 for s in SEVERITY_ORDER}
    for f in findings:
        counts[f.severity] = counts.get(f.severity, 0) + 1
    return counts
