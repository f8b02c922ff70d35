"""HTTP client for the remote edit-log service.

Every call is best-effort: network errors, non-2xx responses, bad JSON,
and a missing server URL all come back as ``None`` so that callers never
fail their own run because the service is unavailable.

Endpoints:
    POST /api/edit-logs          single entry
    POST /api/edit-logs/batch    {"items": [...]}
    GET  /api/edit-logs?page_id= entries for one page
    GET  /api/edit-logs/stats    aggregate counts
    GET  /health                 {"status": "healthy"}
"""

import logging
from typing import Any, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config.settings import Settings, load_settings

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = (5, 10)

# Session-level retry for network transients
_retry = Retry(total=1, allowed_methods=["GET", "POST"], backoff_factor=1, status_forcelist=[502, 503, 504])
_session = requests.Session()
_session.mount("https://", HTTPAdapter(max_retries=_retry))
_session.mount("http://", HTTPAdapter(max_retries=_retry))


class EditLogClient:
    """Thin wrapper over the edit-log REST API."""

    def __init__(self, base_url: str = "", api_key: str = "", timeout: Optional[float] = None):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = (timeout, timeout) if timeout else REQUEST_TIMEOUT

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "EditLogClient":
        settings = settings or load_settings()
        return cls(settings.server_url, settings.server_api_key, settings.server_timeout)

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None,
                 params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        if not self.enabled:
            logger.debug(f"Edit-log server not configured; skipping {method} {path}")
            return None

        url = f"{self.base_url}{path}"
        try:
            response = _session.request(
                method, url, json=body, params=params,
                headers=self._headers(), timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            logger.warning(f"Edit-log request {method} {path} failed: {e}")
            return None
        except ValueError as e:
            logger.warning(f"Edit-log response for {method} {path} was not JSON: {e}")
            return None

    def is_available(self) -> bool:
        """True if /health reports the service as healthy."""
        data = self._request("GET", "/health")
        return isinstance(data, dict) and data.get("status") == "healthy"

    def append(self, entry: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self._request("POST", "/api/edit-logs", body=entry)

    def append_batch(self, entries: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not entries:
            return None
        return self._request("POST", "/api/edit-logs/batch", body={"items": entries})

    def entries_for_page(self, page_id: str) -> Optional[Dict[str, Any]]:
        return self._request("GET", "/api/edit-logs", params={"page_id": page_id})

    def stats(self) -> Optional[Dict[str, Any]]:
        return self._request("GET", "/api/edit-logs/stats")
