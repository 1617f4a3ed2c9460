from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Optional


class SourceControl(ABC):
    """Working-tree operations the update cycle drives, one at a time."""

    @abstractmethod
    def update_remote(self) -> None: ...

    @abstractmethod
    def current_branch(self) -> Optional[str]:
        """Checked-out branch name, or None on a detached HEAD."""

    @abstractmethod
    def default_branch(self) -> str: ...

    @abstractmethod
    def remote_branch_exists(self, name: str) -> bool: ...

    @abstractmethod
    def create_branch(self, name: str) -> None: ...

    @abstractmethod
    def add(self, paths: Iterable[str]) -> None: ...

    @abstractmethod
    def commit(self, message: str) -> None: ...

    @abstractmethod
    def push(self, branch: str) -> None: ...

    @abstractmethod
    def checkout(self, branch: str) -> None: ...

    @abstractmethod
    def restore(self, base: str, paths: Iterable[str]) -> None:
        """Force-checkout `base` and drop untracked leftovers among `paths`."""

    @abstractmethod
    def delete_branch(self, name: str) -> None: ...
