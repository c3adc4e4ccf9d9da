# reconboard/config.py
import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return int(raw)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return float(raw)


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    shodan_api_key: Optional[str] = None
    leakix_api_key: Optional[str] = None
    nikto_api_key: Optional[str] = None
    portscanner_api_key: Optional[str] = None

    shodan_base_url: str = "https://api.shodan.io"
    leakix_base_url: str = "https://leakix.net"
    nikto_base_url: str = "https://api.nikto.online/v01"
    portscanner_base_url: str = "https://api.portscanner.online/v01"

    # Scan job polling: fixed delay between status checks, hard attempt ceiling
    nikto_poll_attempts: int = 30
    nikto_poll_interval: float = 10.0
    portscanner_poll_attempts: int = 45
    portscanner_poll_interval: float = 3.0

    http_timeout: float = 30.0
    source_concurrency: int = 4
    # finished report jobs are dropped from the store after this long
    job_ttl_seconds: int = 3600

    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:3000", "http://localhost:5173"]
    )
    log_level: str = "INFO"
    auth_cookie_name: str = "auth-token"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            shodan_api_key=os.getenv("SHODAN_API_KEY"),
            # older deployments used the misspelled LEAKX_API_KEY
            leakix_api_key=os.getenv("LEAKIX_API_KEY") or os.getenv("LEAKX_API_KEY"),
            nikto_api_key=os.getenv("NIKTO_API_KEY"),
            portscanner_api_key=os.getenv("PORTSCANNER_API_KEY"),
            shodan_base_url=os.getenv("SHODAN_BASE_URL", defaults.shodan_base_url),
            leakix_base_url=os.getenv("LEAKIX_BASE_URL", defaults.leakix_base_url),
            nikto_base_url=os.getenv("NIKTO_BASE_URL", defaults.nikto_base_url),
            portscanner_base_url=os.getenv("PORTSCANNER_BASE_URL", defaults.portscanner_base_url),
            nikto_poll_attempts=_env_int("NIKTO_POLL_ATTEMPTS", defaults.nikto_poll_attempts),
            nikto_poll_interval=_env_float("NIKTO_POLL_INTERVAL", defaults.nikto_poll_interval),
            portscanner_poll_attempts=_env_int("PORTSCANNER_POLL_ATTEMPTS", defaults.portscanner_poll_attempts),
            portscanner_poll_interval=_env_float("PORTSCANNER_POLL_INTERVAL", defaults.portscanner_poll_interval),
            http_timeout=_env_float("HTTP_TIMEOUT", defaults.http_timeout),
            source_concurrency=_env_int("SOURCE_CONCURRENCY", defaults.source_concurrency),
            job_ttl_seconds=_env_int("JOB_TTL_SECONDS", defaults.job_ttl_seconds),
            cors_origins=_env_list("CORS_ORIGINS", defaults.cors_origins),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level).upper(),
            auth_cookie_name=os.getenv("AUTH_COOKIE_NAME", defaults.auth_cookie_name),
        )

    def configured_keys(self) -> dict:
        return {
            "shodan": bool(self.shodan_api_key),
            "leakix": bool(self.leakix_api_key),
            "nikto": bool(self.nikto_api_key),
            "portscanner": bool(self.portscanner_api_key),
        }


settings = Settings.from_env()
