from __future__ import annotations

import json
import logging
from typing import Any

import requests

logger = logging.getLogger(__name__)


class HttpError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class UnauthorizedError(HttpError):
    pass


class ResponseDecodeError(HttpError):
    pass


def _reason(response: Any) -> str:
    # requests exposes `reason`, httpx-based test clients expose `reason_phrase`
    return getattr(response, "reason", None) or getattr(response, "reason_phrase", "") or ""


def error_message(response: Any) -> str:
    """Pick the server's `message` field, falling back to "<status>: <reason>"."""
    fallback = f"{response.status_code}: {_reason(response)}".rstrip(": ")
    text = response.text
    if not text or not text.strip():
        return fallback
    try:
        data = json.loads(text)
    except ValueError:
        return fallback
    if isinstance(data, dict) and isinstance(data.get("message"), str) and data["message"]:
        return data["message"]
    return fallback


class ApiClient:
    """Authenticated request helper.

    The session's cookie jar carries the login cookie, so every call made
    through one client is sent with the same credentials. Any object with a
    `requests.Session`-compatible `request()` can be injected (the FastAPI
    `TestClient` in tests); `timeout_sec` only applies to `requests` sessions,
    other clients keep their own timeout settings.
    """

    def __init__(self, base_url: str, session: Any | None = None, timeout_sec: int = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self._owns_session = session is None
        self.session = session if session is not None else requests.Session()

    def url_for(self, resource: str) -> str:
        if resource.startswith(("http://", "https://")):
            return resource
        if not resource.startswith("/"):
            resource = f"/{resource}"
        return f"{self.base_url}{resource}"

    def request(self, method: str, resource: str, body: Any | None = None) -> Any:
        kwargs: dict[str, Any] = {}
        if isinstance(self.session, requests.Session):
            kwargs["timeout"] = self.timeout_sec
        if body is not None:
            kwargs["json"] = body

        url = self.url_for(resource)
        response = self.session.request(method.upper(), url, **kwargs)
        logger.debug("%s %s -> %s", method.upper(), resource, response.status_code)
        self.raise_for_status(response, method, resource)
        return response

    @staticmethod
    def raise_for_status(response: Any, method: str = "", resource: str = "") -> None:
        status = response.status_code
        if 200 <= status < 300:
            return
        message = error_message(response)
        logger.warning("%s %s failed with %s: %s", method.upper(), resource, status, message)
        if status == 401:
            raise UnauthorizedError(status, message)
        raise HttpError(status, message)

    @staticmethod
    def decode(response: Any) -> Any:
        """Parse a success body; an empty body (204 included) is None, not an error."""
        text = response.text
        if not text or not text.strip():
            return None
        try:
            return json.loads(text)
        except ValueError as exc:
            raise ResponseDecodeError(response.status_code, "Invalid JSON response") from exc

    def get_json(self, resource: str) -> Any:
        return self.decode(self.request("GET", resource))

    def send(self, method: str, resource: str, body: Any | None = None) -> Any:
        return self.decode(self.request(method, resource, body))

    def close(self) -> None:
        if self._owns_session:
            self.session.close()
