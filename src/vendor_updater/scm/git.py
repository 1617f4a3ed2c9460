from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Iterable, List, Optional

from vendor_updater.errors import ConfigurationError, SourceControlError
from vendor_updater.scm.base import SourceControl


class GitClient(SourceControl):
    """SourceControl backed by the `git` command line."""

    def __init__(
        self,
        root: Path,
        *,
        remote: str = "origin",
        author_name: Optional[str] = None,
        author_email: Optional[str] = None,
    ):
        self.root = root
        self.remote = remote
        self._identity: List[str] = []
        if author_name:
            self._identity += ["-c", f"user.name={author_name}"]
        if author_email:
            self._identity += ["-c", f"user.email={author_email}"]

    def _git(self, *args: str) -> str:
        cmd = ["git", *self._identity, *args]
        try:
            proc = subprocess.run(
                cmd,
                cwd=self.root,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise SourceControlError(f"cannot run git: {e}", command=cmd) from e
        if proc.returncode != 0:
            stderr = (proc.stderr or "").strip()
            raise SourceControlError(
                f"{' '.join(cmd)} exited {proc.returncode}: {stderr}",
                command=cmd,
                stderr=stderr,
            )
        return proc.stdout

    def update_remote(self) -> None:
        self._git("fetch", "--prune", self.remote)

    def current_branch(self) -> Optional[str]:
        name = self._git("rev-parse", "--abbrev-ref", "HEAD").strip()
        # detached checkouts (e.g. CI on pull_request) report the literal "HEAD"
        return None if name == "HEAD" else name

    def default_branch(self) -> str:
        prefix = f"{self.remote}/"
        try:
            ref = self._git("symbolic-ref", "--short", f"refs/remotes/{self.remote}/HEAD").strip()
        except SourceControlError:
            ref = ""  # no local <remote>/HEAD; ask the remote below
        if ref:
            return ref[len(prefix):] if ref.startswith(prefix) else ref

        # "ref: refs/heads/main\tHEAD"
        out = self._git("ls-remote", "--symref", self.remote, "HEAD")
        for line in out.splitlines():
            if line.startswith("ref: refs/heads/"):
                return line[len("ref: refs/heads/"):].split("\t", 1)[0].strip()
        raise ConfigurationError(
            f"cannot determine the default branch of {self.remote!r}; set git.base_branch"
        )

    def remote_branches(self) -> List[str]:
        out = self._git("branch", "-r", "--format=%(refname:short)")
        return [line.strip() for line in out.splitlines() if line.strip()]

    def remote_branch_exists(self, name: str) -> bool:
        return f"{self.remote}/{name}" in self.remote_branches()

    def create_branch(self, name: str) -> None:
        self._git("checkout", "-b", name)

    def add(self, paths: Iterable[str]) -> None:
        ps = list(paths)
        if ps:
            self._git("add", "--", *ps)

    def commit(self, message: str) -> None:
        self._git("commit", "-m", message)

    def push(self, branch: str) -> None:
        self._git("push", "--set-upstream", self.remote, branch)

    def checkout(self, branch: str) -> None:
        self._git("checkout", branch)

    def restore(self, base: str, paths: Iterable[str]) -> None:
        self._git("checkout", "-f", base)
        ps = list(paths)
        if ps:
            self._git("clean", "-f", "--", *ps)

    def delete_branch(self, name: str) -> None:
        self._git("branch", "-D", name)
