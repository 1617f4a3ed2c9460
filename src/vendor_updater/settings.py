# src/vendor_updater/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional

import yaml

from vendor_updater.errors import ConfigurationError
from vendor_updater.manifest import DEFAULT_MANIFEST
from vendor_updater.registry.jsdelivr import API_ENDPOINT, CDN_ENDPOINT
from vendor_updater.registry.repo_url import NPM_REGISTRY
from vendor_updater.review.github import GITHUB_API


@dataclass
class Cfg:
    # manifest
    manifest_path: Path

    # registry
    api_endpoint: str
    cdn_endpoint: str
    npm_registry: str
    user_agent: str
    timeout_sec: float
    max_retries: int
    backoff_sec: float

    # git
    remote: str
    base_branch: str          # "" => branch checked out at start
    branch_prefix: str
    author_name: Optional[str]
    author_email: Optional[str]

    # review
    api_url: str
    repository: str           # owner/name
    token: str = field(repr=False, default="")
    labels: List[str] = field(default_factory=list)
    reviewers: List[str] = field(default_factory=list)


def _section(obj: dict[str, Any], key: str) -> dict[str, Any]:
    sec = obj.get(key, {}) or {}
    if not isinstance(sec, dict):
        raise ConfigurationError(f"config section '{key}' must be a mapping")
    return sec


def _str_list(value: Any, key: str) -> List[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(x, str) for x in value):
        raise ConfigurationError(f"{key} must be a list of strings")
    return [x.strip() for x in value if x.strip()]


def split_multiline(text: str) -> List[str]:
    """Newline-delimited input (GitHub Action style) -> list, blanks dropped."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def load_cfg(path: Optional[str] = None, env: Optional[Mapping[str, str]] = None) -> Cfg:
    """Build Cfg from an optional YAML file, then apply environment overrides.

    Env keys: INPUT_TOKEN / GITHUB_TOKEN, INPUT_LABELS, INPUT_REVIEWERS,
    INPUT_MANIFEST, INPUT_BASE_BRANCH, GITHUB_REPOSITORY.
    """
    env = os.environ if env is None else env

    obj: Any = {}
    if path:
        p = Path(path)
        if not p.is_file():
            raise ConfigurationError(f"config file not found: {p}")
        try:
            obj = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML in {p}: {e}") from e
    if not isinstance(obj, dict):
        raise ConfigurationError("config root must be a mapping (YAML dict)")

    man = _section(obj, "manifest")
    reg = _section(obj, "registry")
    git = _section(obj, "git")
    rev = _section(obj, "review")

    try:
        timeout_sec = float(reg.get("timeout_sec", 30))
        max_retries = int(reg.get("max_retries", 3))
        backoff_sec = float(reg.get("backoff_sec", 1.0))
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"invalid registry setting: {e}") from e
    if max_retries < 1:
        raise ConfigurationError("registry.max_retries must be >= 1")
    if timeout_sec <= 0:
        raise ConfigurationError("registry.timeout_sec must be > 0")

    labels = _str_list(rev.get("labels"), "review.labels")
    reviewers = _str_list(rev.get("reviewers"), "review.reviewers")

    cfg = Cfg(
        # manifest
        manifest_path=Path(str(man.get("path") or DEFAULT_MANIFEST)),

        # registry
        api_endpoint=str(reg.get("api_endpoint", API_ENDPOINT)),
        cdn_endpoint=str(reg.get("cdn_endpoint", CDN_ENDPOINT)),
        npm_registry=str(reg.get("npm_registry", NPM_REGISTRY)),
        user_agent=str(reg.get("user_agent", "vendor-updater")),
        timeout_sec=timeout_sec,
        max_retries=max_retries,
        backoff_sec=backoff_sec,

        # git
        remote=str(git.get("remote", "origin")),
        base_branch=str(git.get("base_branch") or ""),
        branch_prefix=str(git.get("branch_prefix", "update-dependencies")).strip("/"),
        author_name=git.get("author_name"),
        author_email=git.get("author_email"),

        # review
        api_url=str(rev.get("api_url", GITHUB_API)),
        repository=str(rev.get("repository") or ""),
        labels=labels,
        reviewers=reviewers,
    )

    # ---- environment overrides ----
    cfg.token = env.get("INPUT_TOKEN") or env.get("GITHUB_TOKEN") or ""
    if env.get("INPUT_LABELS"):
        cfg.labels = split_multiline(env["INPUT_LABELS"])
    if env.get("INPUT_REVIEWERS"):
        cfg.reviewers = split_multiline(env["INPUT_REVIEWERS"])
    if env.get("INPUT_MANIFEST"):
        cfg.manifest_path = Path(env["INPUT_MANIFEST"])
    if env.get("INPUT_BASE_BRANCH"):
        cfg.base_branch = env["INPUT_BASE_BRANCH"]
    if not cfg.repository and env.get("GITHUB_REPOSITORY"):
        cfg.repository = env["GITHUB_REPOSITORY"]

    return cfg


def require_review_credentials(cfg: Cfg) -> None:
    if not cfg.token:
        raise ConfigurationError("missing auth token (set INPUT_TOKEN or GITHUB_TOKEN)")
    if not cfg.repository or "/" not in cfg.repository:
        raise ConfigurationError(
            "missing review repository 'owner/name' (review.repository or GITHUB_REPOSITORY)"
        )
