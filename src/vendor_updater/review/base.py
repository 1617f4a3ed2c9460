from __future__ import annotations

from abc import ABC, abstractmethod
from typing import List


class ReviewClient(ABC):
    @abstractmethod
    def create_pull_request(self, *, head: str, base: str, title: str, body: str) -> int:
        """Open a PR and return its number."""

    @abstractmethod
    def add_labels(self, number: int, labels: List[str]) -> None: ...

    @abstractmethod
    def request_reviewers(self, number: int, reviewers: List[str]) -> None: ...
