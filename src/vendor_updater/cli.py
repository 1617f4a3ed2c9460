from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Any, List, Optional

import orjson

from vendor_updater.errors import ConfigurationError, UpdaterError
from vendor_updater.pipeline.update_cycle import RepositoryContext, check_updates, run_update_cycle
from vendor_updater.registry.jsdelivr import JsDelivrClient
from vendor_updater.registry.repo_url import package_github_repo
from vendor_updater.review.github import GitHubReviewClient
from vendor_updater.scm.git import GitClient
from vendor_updater.settings import Cfg, load_cfg, require_review_credentials


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="vendor-updater",
        description="Check vendored registry files for new releases and propose updates",
    )
    p.add_argument("--config", default=None, help="Optional config YAML")
    p.add_argument("--manifest", default=None, help="Manifest path (default dependencies.json)")
    p.add_argument("--root", default=".", help="Repository root (default: cwd)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Update stale dependencies and open pull requests")
    p_run.add_argument("--base-branch", default=None, help="PR target and branch restored between updates")
    p_run.add_argument("--strict", action="store_true", help="Exit 1 if any dependency failed")

    sub.add_parser("check", help="Report stale dependencies without changing anything")

    p_repo = sub.add_parser("repo", help="Print a package's GitHub host/owner/project")
    p_repo.add_argument("package")
    return p


def _registry(cfg: Cfg) -> JsDelivrClient:
    return JsDelivrClient(
        api_endpoint=cfg.api_endpoint,
        cdn_endpoint=cfg.cdn_endpoint,
        user_agent=cfg.user_agent,
        timeout_sec=cfg.timeout_sec,
        max_retries=cfg.max_retries,
        backoff_sec=cfg.backoff_sec,
    )


def _context(cfg: Cfg, root: Path) -> RepositoryContext:
    scm = GitClient(root, remote=cfg.remote, author_name=cfg.author_name, author_email=cfg.author_email)
    return RepositoryContext(root, cfg.manifest_path, scm, base_branch=cfg.base_branch)


def _print_json(obj: Any) -> None:
    print(orjson.dumps(obj, option=orjson.OPT_INDENT_2).decode("utf-8"))


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    root = Path(args.root)

    try:
        cfg = load_cfg(args.config)
        if args.manifest:
            cfg.manifest_path = Path(args.manifest)

        if args.cmd == "repo":
            _print_json(
                package_github_repo(args.package, registry=cfg.npm_registry, timeout_sec=cfg.timeout_sec)
            )
            sys.exit(0)

        registry = _registry(cfg)
        ctx = _context(cfg, root)

        if args.cmd == "check":
            report = check_updates(ctx, registry)
            _print_json(report.to_dicts())
            sys.exit(1 if report.failures else 0)

        if args.base_branch:
            ctx.base_branch = args.base_branch
        require_review_credentials(cfg)
        review = GitHubReviewClient(
            token=cfg.token,
            repository=cfg.repository,
            api_url=cfg.api_url,
            timeout_sec=cfg.timeout_sec,
        )

        def describe_repo(name: str) -> Optional[str]:
            return package_github_repo(name, registry=cfg.npm_registry, timeout_sec=cfg.timeout_sec)

        report = run_update_cycle(
            ctx,
            registry,
            review,
            labels=cfg.labels,
            reviewers=cfg.reviewers,
            branch_prefix=cfg.branch_prefix,
            describe_repo=describe_repo,
        )
        _print_json(report.to_dicts())
        if report.aborted or (args.strict and report.failures):
            sys.exit(1)
        sys.exit(0)
    except ConfigurationError as e:
        print(f"[ERROR] {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(2)
    except UpdaterError as e:
        print(f"[ERROR] {type(e).__name__}: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
