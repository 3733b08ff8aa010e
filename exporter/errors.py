"""
Purpose: Exception types for the export pipeline.
Description: Carries enough of a failed remote call (status, headers, transport code)
to decide whether it is worth retrying.
Key Functions/Classes: `RemoteError`, `MalformedResponseError`, `ProjectNotFoundError`.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional


TRANSPORT_CONNECTION_RESET = "connection-reset"
TRANSPORT_TIMEOUT = "timeout"
TRANSPORT_CONNECT_ERROR = "connect-error"
TRANSPORT_ERROR = "transport-error"

RETRYABLE_TRANSPORT_CODES = frozenset({TRANSPORT_CONNECTION_RESET, TRANSPORT_TIMEOUT})


class ExporterError(Exception):
    """Base class for export failures."""


class RemoteError(ExporterError):
    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        headers: Optional[Mapping[str, str]] = None,
        transport_code: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.headers: Dict[str, str] = {k.lower(): v for k, v in (headers or {}).items()}
        self.transport_code = transport_code

    def header(self, name: str) -> Optional[str]:
        return self.headers.get(name.lower())

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def retryable(self) -> bool:
        """429, any 5xx, or a reset/timed-out connection."""
        if self.status_code is not None and (self.status_code == 429 or self.status_code >= 500):
            return True
        return self.transport_code in RETRYABLE_TRANSPORT_CODES

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.message!r}, status_code={self.status_code!r}, "
            f"transport_code={self.transport_code!r})"
        )


class MalformedResponseError(RemoteError):
    """Response body was not JSON or did not have a usable shape."""


class ProjectNotFoundError(ExporterError):
    pass
