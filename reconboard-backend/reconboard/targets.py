# reconboard/targets.py
import re

from .errors import InvalidTargetError

IP_RE = re.compile(r"^(?:[0-9]{1,3}\.){3}[0-9]{1,3}$")
DOMAIN_RE = re.compile(r"^(?:[a-z0-9](?:[a-z0-9-]{0,61}[a-z0-9])?\.)+[a-z]{2,}$", re.IGNORECASE)


def is_valid_ip(value: str) -> bool:
    return bool(IP_RE.match(value or ""))


def is_valid_domain(value: str) -> bool:
    return bool(DOMAIN_RE.match(value or ""))


def classify_target(value: str) -> str:
    """Return ``"ip"`` or ``"domain"`` for a scan target, raising on anything else."""
    target = (value or "").strip()
    if is_valid_ip(target):
        return "ip"
    if is_valid_domain(target):
        return "domain"
    raise InvalidTargetError("Invalid target address. Must be a valid domain or IP address.")
