from __future__ import annotations

from typing import Any, Dict, List, Optional

import requests

from vendor_updater.errors import ReviewServiceError
from vendor_updater.review.base import ReviewClient

GITHUB_API = "https://api.github.com"


class GitHubReviewClient(ReviewClient):
    """Pull requests through the GitHub REST API."""

    def __init__(
        self,
        *,
        token: str,
        repository: str,
        api_url: str = GITHUB_API,
        timeout_sec: float = 30,
        session: Optional[requests.Session] = None,
    ):
        if "/" not in repository:
            raise ValueError(f"repository must be 'owner/name', got {repository!r}")
        self.repository = repository
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout_sec
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
            }
        )

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_url}/repos/{self.repository}/{path}"
        try:
            r = self.session.post(url, json=payload, timeout=self.timeout)
            r.raise_for_status()
            return r.json() if r.content else {}
        except requests.RequestException as e:
            raise ReviewServiceError(f"POST {url} failed: {e}") from e
        except ValueError as e:
            raise ReviewServiceError(f"invalid JSON from {url}") from e

    def create_pull_request(self, *, head: str, base: str, title: str, body: str) -> int:
        data = self._post("pulls", {"head": head, "base": base, "title": title, "body": body})
        number = data.get("number")
        if not isinstance(number, int):
            raise ReviewServiceError("pull request response has no number")
        return number

    def add_labels(self, number: int, labels: List[str]) -> None:
        self._post(f"issues/{number}/labels", {"labels": labels})

    def request_reviewers(self, number: int, reviewers: List[str]) -> None:
        self._post(f"pulls/{number}/requested_reviewers", {"reviewers": reviewers})
