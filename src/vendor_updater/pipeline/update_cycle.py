# src/vendor_updater/pipeline/update_cycle.py
from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

from vendor_updater.common.io import LocalStore
from vendor_updater.errors import ManifestParseError
from vendor_updater.manifest import DependencyEntry, Manifest, load_manifest, save_manifest
from vendor_updater.registry.base import RegistryClient
from vendor_updater.review.base import ReviewClient
from vendor_updater.scm.base import SourceControl

CURRENT = "current"
STALE = "stale"            # check-only runs
DUPLICATE = "duplicate"
UPDATED = "updated"
PUSHED = "pushed"          # branch pushed, PR not opened
ERRORED = "errored"

DEFAULT_BRANCH_PREFIX = "update-dependencies"


def branch_name(name: str, latest_version: str, prefix: str = DEFAULT_BRANCH_PREFIX) -> str:
    # keyed on the target version so reruns for the same release collapse
    return f"{prefix}/{name}-{latest_version}"


def commit_message(name: str, old_version: str, latest_version: str) -> str:
    return f"chore(deps): bump {name} from {old_version or 'unknown'} to {latest_version}"


def pr_body(
    name: str,
    old_version: str,
    latest_version: str,
    package_page: str,
    github_repo: Optional[str] = None,
) -> str:
    lines = [
        f"Bumps [{name}]({package_page}) from {old_version or 'unknown'} to {latest_version}.",
    ]
    if github_repo:
        lines += ["", f"Release notes: https://{github_repo}/releases"]
    lines += ["", "This pull request was opened automatically by vendor-updater."]
    return "\n".join(lines)


@dataclass
class DependencyOutcome:
    name: str
    status: str
    recorded_version: str
    latest_version: Optional[str] = None
    branch: Optional[str] = None
    files: List[str] = field(default_factory=list)
    pr_number: Optional[int] = None
    error: Optional[str] = None
    rollback_error: Optional[str] = None


@dataclass
class RunReport:
    outcomes: List[DependencyOutcome] = field(default_factory=list)
    aborted: bool = False

    def counts(self) -> Dict[str, int]:
        out: Dict[str, int] = {}
        for o in self.outcomes:
            out[o.status] = out.get(o.status, 0) + 1
        return out

    @property
    def failures(self) -> List[DependencyOutcome]:
        return [o for o in self.outcomes if o.status in (ERRORED, PUSHED)]

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [asdict(o) for o in self.outcomes]


class RepositoryContext:
    """The working tree, its checked-out branch and the manifest file.

    Shared mutable state: only one holder at a time (see `hold`).
    """

    def __init__(self, root: Path, manifest_path: Path, scm: SourceControl, base_branch: str = ""):
        self.root = root
        self.manifest_path = manifest_path
        self.scm = scm
        self.base_branch = base_branch
        self.manifest: Optional[Manifest] = None
        self._lock = threading.Lock()

    @contextmanager
    def hold(self) -> Iterator["RepositoryContext"]:
        if not self._lock.acquire(blocking=False):
            raise RuntimeError("repository context is already in use")
        try:
            yield self
        finally:
            self._lock.release()

    @property
    def manifest_file(self) -> Path:
        p = self.manifest_path
        return p if p.is_absolute() else self.root / p

    @property
    def manifest_rel(self) -> str:
        p = self.manifest_file
        try:
            return p.relative_to(self.root).as_posix()
        except ValueError:
            return str(p)

    def load(self) -> Manifest:
        self.manifest = load_manifest(self.manifest_file)
        return self.manifest

    def _loaded(self) -> Manifest:
        if self.manifest is None:
            raise RuntimeError("manifest not loaded; call load() first")
        return self.manifest

    def store(self) -> LocalStore:
        return LocalStore(self.root / self._loaded().local_base_path)

    def vendored_path(self, local: str) -> str:
        return (Path(self._loaded().local_base_path) / local).as_posix()

    def record_version(self, name: str, version: str) -> Manifest:
        """Re-read the manifest from disk, bump one entry, persist the whole file."""
        fresh = load_manifest(self.manifest_file)
        entry = fresh.find(name)
        if entry is None:
            raise ManifestParseError(f"dependency {name!r} disappeared from {self.manifest_file}")
        entry.version = version
        save_manifest(self.manifest_file, fresh)
        self.manifest = fresh
        return fresh


def _rollback(ctx: RepositoryContext, outcome: DependencyOutcome, written: List[str], pushed: bool) -> None:
    print(f"[ROLLBACK] {outcome.name}: restoring {ctx.base_branch}")
    ctx.scm.restore(ctx.base_branch, written)
    if outcome.branch and not pushed:
        ctx.scm.delete_branch(outcome.branch)


def _open_pull_request(
    ctx: RepositoryContext,
    entry: DependencyEntry,
    outcome: DependencyOutcome,
    registry: RegistryClient,
    review: ReviewClient,
    *,
    labels: Sequence[str],
    reviewers: Sequence[str],
    describe_repo: Optional[Callable[[str], Optional[str]]],
) -> None:
    latest = outcome.latest_version or ""
    github_repo = None
    if describe_repo is not None:
        try:
            github_repo = describe_repo(entry.name)
        except Exception as e:
            print(f"[WARN] {entry.name}: repository lookup failed -> {e}")

    title = commit_message(entry.name, entry.version, latest)
    body = pr_body(entry.name, entry.version, latest, registry.package_page(entry.name), github_repo)
    try:
        number = review.create_pull_request(
            head=outcome.branch or "", base=ctx.base_branch, title=title, body=body
        )
    except Exception as e:
        # the branch is already on the remote: partial success either way
        outcome.status = PUSHED
        outcome.error = f"{type(e).__name__}: {e}"
        print(f"[PR FAIL] {entry.name}: branch {outcome.branch} pushed, PR not opened -> {e}")
        return

    outcome.pr_number = number
    outcome.status = UPDATED
    print(f"[PR] {entry.name}: #{number} {outcome.branch} -> {ctx.base_branch}")

    if labels:
        try:
            review.add_labels(number, list(labels))
        except Exception as e:
            print(f"[WARN] {entry.name}: labels not applied to #{number} -> {e}")
    if reviewers:
        try:
            review.request_reviewers(number, list(reviewers))
        except Exception as e:
            print(f"[WARN] {entry.name}: reviewers not requested on #{number} -> {e}")


def update_dependency(
    ctx: RepositoryContext,
    entry: DependencyEntry,
    registry: RegistryClient,
    review: ReviewClient,
    *,
    labels: Sequence[str] = (),
    reviewers: Sequence[str] = (),
    branch_prefix: str = DEFAULT_BRANCH_PREFIX,
    describe_repo: Optional[Callable[[str], Optional[str]]] = None,
) -> DependencyOutcome:
    """One dependency: current, duplicate, or branch -> fetch -> commit -> push -> PR.

    Errors stay inside this call. Partial work is rolled back to a clean
    checkout of the base branch before returning an `errored` outcome.
    """
    outcome = DependencyOutcome(name=entry.name, status=ERRORED, recorded_version=entry.version)
    written: List[str] = []
    created = pushed = False
    scm = ctx.scm

    try:
        latest = registry.latest_version(entry.name)
        outcome.latest_version = latest
        print(f"[CHECK] {entry.name}: recorded={entry.version or '-'} latest={latest}")

        # plain string equality, no version ordering
        if latest == entry.version:
            outcome.status = CURRENT
            print(f"[CURRENT] {entry.name}")
            return outcome

        branch = branch_name(entry.name, latest, branch_prefix)
        outcome.branch = branch
        if scm.remote_branch_exists(branch):
            outcome.status = DUPLICATE
            print(f"[DUPLICATE] {entry.name}: {branch} already on remote")
            return outcome

        scm.create_branch(branch)
        created = True
        print(f"[BRANCH] {entry.name}: {branch}")

        store = ctx.store()
        for f in entry.files:
            store.path(f.local)  # rejects paths outside localBasePath
            data = registry.fetch_file(entry.name, latest, f.remote)
            # tracked before writing so a partial file is still cleaned up
            written.append(ctx.vendored_path(f.local))
            store.write_bytes(f.local, data)
            print(f"[FETCH] {entry.name}@{latest}/{f.remote} -> {written[-1]} ({len(data)} bytes)")

        ctx.record_version(entry.name, latest)
        print(f"[MANIFEST] {ctx.manifest_rel}: {entry.name} -> {latest}")

        message = commit_message(entry.name, entry.version, latest)
        scm.add([ctx.manifest_rel, *written])
        scm.commit(message)
        print(f"[COMMIT] {message}")

        scm.push(branch)
        pushed = True
        print(f"[PUSH] {branch}")

        scm.checkout(ctx.base_branch)
        outcome.files = written
    except Exception as e:
        outcome.error = f"{type(e).__name__}: {e}"
        if pushed:
            outcome.status = PUSHED
        print(f"[FAIL] {entry.name} -> {outcome.error}")
        if created:
            try:
                _rollback(ctx, outcome, written, pushed)
            except Exception as rb:
                outcome.rollback_error = f"{type(rb).__name__}: {rb}"
                print(f"[ROLLBACK FAIL] {entry.name} -> {outcome.rollback_error}")
        return outcome

    _open_pull_request(
        ctx,
        entry,
        outcome,
        registry,
        review,
        labels=labels,
        reviewers=reviewers,
        describe_repo=describe_repo,
    )
    return outcome


def run_update_cycle(
    ctx: RepositoryContext,
    registry: RegistryClient,
    review: ReviewClient,
    *,
    labels: Sequence[str] = (),
    reviewers: Sequence[str] = (),
    branch_prefix: str = DEFAULT_BRANCH_PREFIX,
    describe_repo: Optional[Callable[[str], Optional[str]]] = None,
    update_remote: bool = True,
) -> RunReport:
    """Process every manifest entry in order, strictly one at a time.

    Manifest or remote problems before the loop propagate (nothing mutated
    yet). Inside the loop each dependency yields an outcome; the batch only
    stops early when a rollback fails and the working tree is untrusted.
    """
    with ctx.hold():
        manifest = ctx.load()
        if update_remote:
            ctx.scm.update_remote()
        current = ctx.scm.current_branch()
        if not ctx.base_branch:
            ctx.base_branch = current or ctx.scm.default_branch()
        # every update branch starts from the base tip
        if current != ctx.base_branch:
            ctx.scm.checkout(ctx.base_branch)
            manifest = ctx.load()

        print(
            f"[START] manifest={ctx.manifest_rel} base={ctx.base_branch} "
            f"dependencies={len(manifest.dependencies)}"
        )

        report = RunReport()
        for entry in list(manifest.dependencies):
            outcome = update_dependency(
                ctx,
                entry,
                registry,
                review,
                labels=labels,
                reviewers=reviewers,
                branch_prefix=branch_prefix,
                describe_repo=describe_repo,
            )
            report.outcomes.append(outcome)
            if outcome.rollback_error:
                report.aborted = True
                print("[ABORT] working tree could not be restored; stopping batch")
                break

    counts = " ".join(f"{k}={v}" for k, v in sorted(report.counts().items()))
    print(f"[DONE] total={len(report.outcomes)} {counts}".rstrip())
    return report


def check_updates(ctx: RepositoryContext, registry: RegistryClient) -> RunReport:
    """Read-only staleness report: no branches, downloads or writes."""
    with ctx.hold():
        manifest = ctx.load()
        report = RunReport()
        for entry in manifest.dependencies:
            outcome = DependencyOutcome(name=entry.name, status=ERRORED, recorded_version=entry.version)
            try:
                outcome.latest_version = registry.latest_version(entry.name)
            except Exception as e:
                outcome.error = f"{type(e).__name__}: {e}"
                print(f"[FAIL] {entry.name} -> {outcome.error}")
            else:
                outcome.status = CURRENT if outcome.latest_version == entry.version else STALE
                print(
                    f"[{outcome.status.upper()}] {entry.name}: "
                    f"recorded={entry.version or '-'} latest={outcome.latest_version}"
                )
            report.outcomes.append(outcome)

    counts = " ".join(f"{k}={v}" for k, v in sorted(report.counts().items()))
    print(f"[DONE] total={len(report.outcomes)} {counts}".rstrip())
    return report
