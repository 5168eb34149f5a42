import logging
from typing import Any, Dict, Optional

import requests

from infrastructure.token_store import TokenStore

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30
RETRY_TIMEOUT = 60


class ApiError(Exception):
    def __init__(self, status_code: int, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.payload = payload or {}


class UnauthorizedError(ApiError):
    pass


def _masked(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: ("Bearer ***" if k.lower() == "authorization" else v) for k, v in headers.items()}


def _decode(resp) -> Dict[str, Any]:
    if not resp.content:
        return {}
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {"data": body}


class ApiClient:
    """JSON client for the backend REST API.

    The bearer token is read from the shared TokenStore at dispatch time, never
    cached per request. A 401 response purges the stored token, except on
    credential checks (purge_on_unauthorized=False) where it only means the
    submitted password was wrong.
    """

    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        timeout: float = DEFAULT_TIMEOUT,
        retry_timeout: float = RETRY_TIMEOUT,
    ):
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.timeout = timeout
        self.retry_timeout = retry_timeout

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        token = self.token_store.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _send(self, method: str, url: str, timeout: float, **kwargs):
        headers = self._headers()
        log.debug(f"Making request to: {method} {url} headers={_masked(headers)}")
        return requests.request(method, url, headers=headers, timeout=timeout, **kwargs)

    def request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params=None,
        purge_on_unauthorized: bool = True,
    ) -> Dict[str, Any]:
        method = method.upper()
        url = f"{self.base_url}/{path.lstrip('/')}"
        kwargs = {}
        if json is not None:
            kwargs["json"] = json
        if params is not None:
            kwargs["params"] = params

        try:
            resp = self._send(method, url, self.timeout, **kwargs)
        except requests.Timeout:
            if method != "GET":
                log.error(f"Request timed out after {self.timeout}s: {method} {url}")
                raise
            # Idempotent reads get one more chance with a longer deadline.
            log.warning(f"Request timed out after {self.timeout}s, retrying once: {method} {url}")
            resp = self._send(method, url, self.retry_timeout, **kwargs)
        except requests.ConnectionError as e:
            log.error(f"Cannot reach backend at {self.base_url}: {e}")
            raise

        log.info(f"Response received: {resp.status_code} {method} {path}")

        if resp.status_code == 401 and purge_on_unauthorized:
            self.token_store.invalidate()
            payload = _decode(resp)
            raise UnauthorizedError(401, payload.get("message") or "Unauthorized", payload)

        if resp.status_code >= 400:
            payload = _decode(resp)
            message = payload.get("message") or f"HTTP {resp.status_code}"
            log.error(f"API error {resp.status_code} for {method} {path}: {message}")
            raise ApiError(resp.status_code, message, payload)

        return _decode(resp)

    def get(self, path: str, params=None) -> Dict[str, Any]:
        return self.request("GET", path, params=params)

    def post(
        self, path: str, json: Optional[Dict[str, Any]] = None, purge_on_unauthorized: bool = True
    ) -> Dict[str, Any]:
        return self.request("POST", path, json=json, purge_on_unauthorized=purge_on_unauthorized)

    def put(self, path: str, json: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.request("PUT", path, json=json)
