from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

import orjson
import pytest

from vendor_updater.errors import SourceControlError, TransientFetchError
from vendor_updater.pipeline.update_cycle import DUPLICATE, ERRORED, UPDATED, RepositoryContext, run_update_cycle
from vendor_updater.registry.base import RegistryClient
from vendor_updater.review.base import ReviewClient
from vendor_updater.scm.git import GitClient

pytestmark = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def _git(cwd: Path, *args: str) -> str:
    return subprocess.run(["git", *args], cwd=cwd, check=True, capture_output=True, text=True).stdout


class StaticRegistry(RegistryClient):
    def __init__(self, latest: dict[str, str], broken: set[str] = frozenset()):
        self.latest = latest
        self.broken = broken

    def latest_version(self, name: str) -> str:
        return self.latest[name]

    def fetch_file(self, name: str, version: str, remote_path: str) -> bytes:
        if remote_path in self.broken:
            raise TransientFetchError(f"GET {name}@{version}/{remote_path} failed: 404")
        return f"// {name}@{version}/{remote_path}\n".encode("utf-8")


class RecordingReview(ReviewClient):
    def __init__(self):
        self.prs: list[tuple[str, str]] = []

    def create_pull_request(self, *, head: str, base: str, title: str, body: str) -> int:
        self.prs.append((head, base))
        return len(self.prs)

    def add_labels(self, number: int, labels: list[str]) -> None:
        pass

    def request_reviewers(self, number: int, reviewers: list[str]) -> None:
        pass


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    remote = tmp_path / "remote.git"
    work = tmp_path / "work"
    remote.mkdir()
    work.mkdir()
    _git(remote, "init", "--bare")
    _git(remote, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(work, "init")
    _git(work, "symbolic-ref", "HEAD", "refs/heads/main")
    _git(work, "config", "user.name", "Test")
    _git(work, "config", "user.email", "test@example.com")
    _git(work, "config", "commit.gpgsign", "false")

    manifest = {
        "localBasePath": "vendor",
        "dependencies": [
            {
                "name": "left-pad",
                "version": "1.0.0",
                "files": [{"remote": "index.js", "local": "left-pad.js"}],
            },
            {
                "name": "katex",
                "version": "0.15.0",
                "files": [
                    {"remote": "dist/katex.min.js", "local": "katex/katex.min.js"},
                    {"remote": "dist/katex.min.css", "local": "katex/katex.min.css"},
                ],
            },
        ],
    }
    (work / "dependencies.json").write_bytes(orjson.dumps(manifest, option=orjson.OPT_INDENT_2) + b"\n")
    _git(work, "add", "dependencies.json")
    _git(work, "commit", "-m", "initial")
    _git(work, "remote", "add", "origin", str(remote))
    _git(work, "push", "-u", "origin", "main")
    return work


def _recorded(work: Path) -> dict[str, str]:
    obj = orjson.loads((work / "dependencies.json").read_bytes())
    return {d["name"]: d["version"] for d in obj["dependencies"]}


def test_git_client_basics(repo: Path):
    git = GitClient(repo)
    git.update_remote()

    assert git.current_branch() == "main"
    assert "origin/main" in git.remote_branches()
    assert git.remote_branch_exists("main")
    assert not git.remote_branch_exists("update-dependencies/left-pad-1.3.0")


def test_default_branch_comes_from_remote_head(repo: Path):
    git = GitClient(repo)

    # no local origin/HEAD after a plain push, so the remote is asked
    assert git.default_branch() == "main"

    _git(repo, "remote", "set-head", "origin", "main")
    assert git.default_branch() == "main"


def test_git_failure_is_source_control_error(repo: Path):
    with pytest.raises(SourceControlError) as exc:
        GitClient(repo).checkout("does-not-exist")
    assert exc.value.command[:2] == ["git", "checkout"]


def test_full_cycle_against_bare_remote(repo: Path):
    registry = StaticRegistry({"left-pad": "1.3.0", "katex": "0.15.0"})
    review = RecordingReview()
    ctx = RepositoryContext(repo, Path("dependencies.json"), GitClient(repo))

    report = run_update_cycle(ctx, registry, review)

    assert [o.status for o in report.outcomes] == [UPDATED, "current"]
    branch = "update-dependencies/left-pad-1.3.0"
    assert review.prs == [(branch, "main")]
    assert branch in _git(repo, "ls-remote", "--heads", "origin")

    # back on main, which still records the old version
    assert _git(repo, "rev-parse", "--abbrev-ref", "HEAD").strip() == "main"
    assert _recorded(repo)["left-pad"] == "1.0.0"
    assert not (repo / "vendor" / "left-pad.js").exists()

    log = _git(repo, "log", "-1", "--format=%s", branch)
    assert log.strip() == "chore(deps): bump left-pad from 1.0.0 to 1.3.0"
    files = _git(repo, "show", "--name-only", "--format=", branch).split()
    assert sorted(files) == ["dependencies.json", "vendor/left-pad.js"]
    on_branch = orjson.loads(_git(repo, "show", f"{branch}:dependencies.json"))
    assert on_branch["dependencies"][0]["version"] == "1.3.0"

    # same registry state again: the pushed branch blocks a second proposal
    again = run_update_cycle(
        RepositoryContext(repo, Path("dependencies.json"), GitClient(repo)), registry, review
    )
    assert [o.status for o in again.outcomes] == [DUPLICATE, "current"]
    assert len(review.prs) == 1


def test_failed_download_restores_clean_checkout(repo: Path):
    registry = StaticRegistry({"left-pad": "1.0.0", "katex": "0.16.0"}, broken={"dist/katex.min.css"})
    review = RecordingReview()
    ctx = RepositoryContext(repo, Path("dependencies.json"), GitClient(repo))

    report = run_update_cycle(ctx, registry, review)

    assert [o.status for o in report.outcomes] == ["current", ERRORED]
    assert review.prs == []
    assert _git(repo, "rev-parse", "--abbrev-ref", "HEAD").strip() == "main"
    assert _git(repo, "status", "--porcelain").strip() == ""
    assert not (repo / "vendor" / "katex" / "katex.min.js").exists()
    assert "update-dependencies/katex-0.16.0" not in _git(repo, "branch", "--list")
    assert _recorded(repo)["katex"] == "0.15.0"


def test_detached_head_targets_default_branch(repo: Path):
    _git(repo, "checkout", "--detach")
    registry = StaticRegistry({"left-pad": "1.3.0", "katex": "0.16.0"})
    review = RecordingReview()
    git = GitClient(repo)
    assert git.current_branch() is None

    report = run_update_cycle(RepositoryContext(repo, Path("dependencies.json"), git), registry, review)

    assert [o.status for o in report.outcomes] == [UPDATED, UPDATED]
    assert review.prs == [
        ("update-dependencies/left-pad-1.3.0", "main"),
        ("update-dependencies/katex-0.16.0", "main"),
    ]
    assert _git(repo, "rev-parse", "--abbrev-ref", "HEAD").strip() == "main"

    katex_log = _git(repo, "log", "--format=%s", "origin/update-dependencies/katex-0.16.0")
    assert "bump katex from 0.15.0 to 0.16.0" in katex_log
    assert "bump left-pad" not in katex_log
    on_katex = orjson.loads(_git(repo, "show", "update-dependencies/katex-0.16.0:dependencies.json"))
    assert {d["name"]: d["version"] for d in on_katex["dependencies"]} == {"left-pad": "1.0.0", "katex": "0.16.0"}
