from __future__ import annotations

from abc import ABC, abstractmethod


class RegistryClient(ABC):
    @abstractmethod
    def latest_version(self, name: str) -> str: ...

    @abstractmethod
    def fetch_file(self, name: str, version: str, remote_path: str) -> bytes: ...

    def package_page(self, name: str) -> str:
        # human-facing link used in PR bodies
        return f"https://www.npmjs.com/package/{name}"
