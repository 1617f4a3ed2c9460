from __future__ import annotations

from typing import Any, Optional

import requests
from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from vendor_updater.errors import TransientFetchError
from vendor_updater.registry.base import RegistryClient

API_ENDPOINT = "https://data.jsdelivr.com/v1/package/npm"
CDN_ENDPOINT = "https://cdn.jsdelivr.net/npm"


class JsDelivrClient(RegistryClient):
    """npm packages through jsDelivr: data API for tags, CDN for files."""

    def __init__(
        self,
        *,
        api_endpoint: str = API_ENDPOINT,
        cdn_endpoint: str = CDN_ENDPOINT,
        user_agent: str = "vendor-updater",
        timeout_sec: float = 30,
        max_retries: int = 3,
        backoff_sec: float = 1.0,
        session: Optional[requests.Session] = None,
    ):
        self.api_endpoint = api_endpoint.rstrip("/")
        self.cdn_endpoint = cdn_endpoint.rstrip("/")
        self.timeout = timeout_sec
        self.max_retries = max_retries
        self.backoff_sec = backoff_sec
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": user_agent})

    def _get(self, url: str) -> requests.Response:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_retries),
            wait=wait_exponential(multiplier=self.backoff_sec, max=10),
            retry=retry_if_exception_type(requests.RequestException),
            reraise=True,
        )
        try:
            for attempt in retrying:
                with attempt:
                    r = self.session.get(url, timeout=self.timeout, allow_redirects=True)
                    r.raise_for_status()
                    return r
        except requests.RequestException as e:
            raise TransientFetchError(f"GET {url} failed: {e}") from e
        raise TransientFetchError(f"GET {url} failed")

    def latest_version(self, name: str) -> str:
        url = f"{self.api_endpoint}/{name}"
        r = self._get(url)
        try:
            obj: Any = r.json()
        except ValueError as e:
            raise TransientFetchError(f"invalid JSON from {url}") from e
        latest = (obj.get("tags") or {}).get("latest") if isinstance(obj, dict) else None
        if not isinstance(latest, str) or not latest:
            raise TransientFetchError(f"no tags.latest for package {name!r}")
        return latest

    def fetch_file(self, name: str, version: str, remote_path: str) -> bytes:
        url = f"{self.cdn_endpoint}/{name}@{version}/{remote_path.lstrip('/')}"
        return self._get(url).content
