import httpx
import pytest

from reconboard.config import settings


@pytest.fixture(autouse=True)
def api_settings(monkeypatch):
    monkeypatch.setattr(settings, "shodan_api_key", "shodan-key")
    monkeypatch.setattr(settings, "leakix_api_key", "leakix-key")
    monkeypatch.setattr(settings, "nikto_api_key", "nikto-key")
    monkeypatch.setattr(settings, "portscanner_api_key", "portscanner-key")
    monkeypatch.setattr(settings, "nikto_poll_interval", 0)
    monkeypatch.setattr(settings, "portscanner_poll_interval", 0)
    monkeypatch.setattr(settings, "nikto_poll_attempts", 3)
    monkeypatch.setattr(settings, "portscanner_poll_attempts", 3)
    return settings


@pytest.fixture
def make_client():
    """Build an AsyncClient whose requests are answered by ``handler``."""
    def factory(handler):
        return httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return factory
