from __future__ import annotations

import re
from typing import Any, Optional
from urllib.parse import quote, urlparse

import requests

from vendor_updater.errors import TransientFetchError

NPM_REGISTRY = "https://registry.npmjs.com"

GITHUB_HOSTS = {"github.com", "www.github.com"}

# git@github.com:owner/project.git
_SCP_RE = re.compile(r"^(?:[\w.-]+@)?(?P<host>[\w.-]+):(?P<path>[^/].*)$")
# owner/project (npm shorthand for GitHub)
_SHORTHAND_RE = re.compile(r"^[\w.-]+/[\w.-]+$")


def _owner_project(path: str) -> Optional[tuple[str, str]]:
    parts = [p for p in path.split("/") if p]
    if len(parts) < 2:
        return None
    owner, project = parts[0], parts[1]
    if project.endswith(".git"):
        project = project[: -len(".git")]
    if not owner or not project:
        return None
    return owner, project


def normalize_github_url(url: str) -> Optional[str]:
    """Normalize a repository URL to 'github.com/<owner>/<project>'.

    Returns None for anything not hosted on GitHub (GitLab, Bitbucket,
    self-hosted forges, unparseable strings).
    """
    u = url.strip()
    if not u:
        return None

    if u.startswith("github:"):
        op = _owner_project(u[len("github:"):])
        return f"github.com/{op[0]}/{op[1]}" if op else None
    if re.match(r"^(gitlab|bitbucket|gist):", u):
        return None
    if _SHORTHAND_RE.match(u):
        op = _owner_project(u)
        return f"github.com/{op[0]}/{op[1]}" if op else None

    if "://" in u:
        p = urlparse(u)
        host = (p.hostname or "").lower()
        path = p.path
    elif u.split("/", 1)[0].lower() in GITHUB_HOSTS:
        host, _, path = u.partition("/")
        host = host.lower()
    else:
        m = _SCP_RE.match(u)
        if not m:
            return None
        host = m.group("host").lower()
        path = m.group("path")

    if host not in GITHUB_HOSTS:
        return None
    op = _owner_project(path.split("#", 1)[0])
    if op is None:
        return None
    return f"github.com/{op[0]}/{op[1]}"


def _repository_url(record: Any) -> Optional[str]:
    if not isinstance(record, dict):
        return None
    repo = record.get("repository")
    if isinstance(repo, str):
        return repo
    if isinstance(repo, dict) and isinstance(repo.get("url"), str):
        return repo["url"]
    return None


def _fetch_record(sess: requests.Session, url: str, timeout_sec: float) -> Any:
    try:
        r = sess.get(url, timeout=timeout_sec)
        r.raise_for_status()
    except requests.RequestException as e:
        raise TransientFetchError(f"GET {url} failed: {e}") from e
    # requests' JSONDecodeError is both a ValueError and a RequestException
    try:
        return r.json()
    except ValueError as e:
        raise TransientFetchError(f"invalid JSON from {url}") from e


def package_github_repo(
    name: str,
    *,
    registry: str = NPM_REGISTRY,
    session: Optional[requests.Session] = None,
    timeout_sec: float = 30,
) -> Optional[str]:
    """Resolve a package's declared repository to 'host/owner/project', or None."""
    # scoped names keep '@' but escape the slash: @scope%2Fpkg
    url = f"{registry.rstrip('/')}/{quote(name, safe='@')}"
    if session is None:
        with requests.Session() as sess:
            record = _fetch_record(sess, url, timeout_sec)
    else:
        record = _fetch_record(session, url, timeout_sec)

    repo_url = _repository_url(record)
    if repo_url is None:
        return None
    return normalize_github_url(repo_url)
