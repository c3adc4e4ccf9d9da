# reconboard/errors.py
from typing import Optional


class SourceError(Exception):
    """Base error for anything that goes wrong talking to an intelligence source.

    ``message`` is what the dashboard shows the user, ``status_code`` is the
    HTTP status the REST layer answers with.
    """

    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class InvalidTargetError(SourceError):
    status_code = 400


class ApiKeyMissingError(SourceError):
    status_code = 500

    def __init__(self, provider: str):
        super().__init__(f"{provider} API key not configured")
        self.provider = provider


class RateLimitedError(SourceError):
    status_code = 429

    def __init__(self, wait: Optional[str] = None):
        self.wait = wait
        super().__init__(f"Rate limited. Please wait {wait or 'a moment'} before trying again.")


class UpstreamError(SourceError):
    status_code = 502

    def __init__(self, message: str, upstream_status: Optional[int] = None):
        status = upstream_status if upstream_status and upstream_status >= 400 else None
        super().__init__(message, status)
        self.upstream_status = upstream_status


class ScanFailedError(SourceError):
    status_code = 502

    def __init__(self, message: str, scan_id: Optional[str] = None):
        super().__init__(message)
        self.scan_id = scan_id


class ScanTimeoutError(SourceError):
    status_code = 504

    def __init__(self, message: str, scan_id: Optional[str] = None):
        super().__init__(message)
        self.scan_id = scan_id


class ScanCancelledError(SourceError):
    status_code = 499

    def __init__(self, scan_id: Optional[str] = None):
        super().__init__("Scan cancelled")
        self.scan_id = scan_id


def describe_error(exc: BaseException) -> str:
    """Human readable message for the dashboard."""
    if isinstance(exc, SourceError):
        return exc.message
    text = str(exc).strip()
    if not text:
        return exc.__class__.__name__
    return text
