"""
Purpose: Thin authenticated client for the Braintrust REST API.
Description: Wraps httpx.Client, translates HTTP and transport failures into RemoteError
so the retry executor can classify them, and decodes listing/page responses.
Key Functions/Classes: `BraintrustClient`.
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Optional

import httpx

from .config import ExportSession
from .constants import PAGE_LIMIT
from .errors import (
    MalformedResponseError,
    ProjectNotFoundError,
    RemoteError,
    TRANSPORT_CONNECT_ERROR,
    TRANSPORT_CONNECTION_RESET,
    TRANSPORT_ERROR,
    TRANSPORT_TIMEOUT,
)
from .models import Entity, Page, Project, decode_entities, decode_object, decode_page, decode_projects
from .rate_limiter import DEFAULT_RETRY, Sleeper, with_retry


def _error_from_response(response: httpx.Response) -> RemoteError:
    detail = None
    try:
        body = response.json()
        if isinstance(body, dict):
            detail = body.get("message") or body.get("error")
    except ValueError:
        pass
    detail = detail or response.reason_phrase or response.text[:200]
    return RemoteError(
        f"API Error: {response.status_code} - {detail}",
        status_code=response.status_code,
        headers=dict(response.headers.items()),
    )


class BraintrustClient:
    def __init__(
        self,
        api_key: str,
        api_base: str,
        *,
        timeout_seconds: float = 60.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._http = httpx.Client(
            base_url=api_base.rstrip("/") + "/",
            headers=headers,
            timeout=timeout_seconds,
            transport=transport,
        )

    @classmethod
    def from_session(cls, session: ExportSession, *, transport: Optional[httpx.BaseTransport] = None) -> "BraintrustClient":
        if not session.api_key:
            raise ValueError("An API key is required")
        return cls(session.api_key, session.api_base, timeout_seconds=session.timeout_seconds, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "BraintrustClient":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def do_request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None,
                   params: Optional[Dict[str, Any]] = None) -> Any:
        """Send one request and return the decoded JSON body."""
        query = {k: v for k, v in (params or {}).items() if v is not None}
        try:
            response = self._http.request(method, path.lstrip("/"), json=body, params=query or None)
        except httpx.TimeoutException as exc:
            raise RemoteError(f"Request timed out: {exc}", transport_code=TRANSPORT_TIMEOUT) from exc
        except (httpx.ReadError, httpx.WriteError, httpx.RemoteProtocolError) as exc:
            raise RemoteError(f"Connection reset: {exc}", transport_code=TRANSPORT_CONNECTION_RESET) from exc
        except httpx.ConnectError as exc:
            raise RemoteError(f"Could not connect: {exc}", transport_code=TRANSPORT_CONNECT_ERROR) from exc
        except httpx.TransportError as exc:
            raise RemoteError(f"Transport error: {exc}", transport_code=TRANSPORT_ERROR) from exc

        if response.is_error:
            raise _error_from_response(response)
        try:
            return response.json()
        except ValueError as exc:
            raise MalformedResponseError(
                f"Response from {path} is not valid JSON", status_code=response.status_code
            ) from exc

    def list_projects(self) -> List[Project]:
        return decode_projects(self.do_request("GET", "project"))

    def get_project(self, project_id: str) -> Project:
        try:
            payload = self.do_request("GET", f"project/{project_id}")
        except RemoteError as exc:
            if exc.status_code == 404:
                raise ProjectNotFoundError(f'Project with ID "{project_id}" not found') from exc
            raise
        if not isinstance(payload, dict):
            raise MalformedResponseError(f"Unexpected project response for {project_id}")
        return decode_object(Project, payload)

    def resolve_project(self, name_or_id: str, *, sleep: Sleeper = time.sleep) -> Project:
        """Find a project by id or exact name."""
        projects = with_retry(self.list_projects, DEFAULT_RETRY, sleep=sleep)
        for project in projects:
            if project.id == name_or_id or project.name == name_or_id:
                return project
        raise ProjectNotFoundError(f'Project "{name_or_id}" not found')

    def list_entities(self, kind: str, project_id: str) -> List[Entity]:
        return decode_entities(self.do_request("GET", kind, params={"project_id": project_id}))

    def fetch_page(self, kind: str, entity_id: str, cursor: Optional[str] = None,
                   limit: int = PAGE_LIMIT) -> Page:
        body: Dict[str, Any] = {"limit": limit}
        if cursor:
            body["cursor"] = cursor
        return decode_page(self.do_request("POST", f"{kind}/{entity_id}/fetch", body=body))

    def verify_api_key(self) -> bool:
        try:
            self.do_request("GET", "project")
        except RemoteError:
            return False
        return True
