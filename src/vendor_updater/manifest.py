from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson

from vendor_updater.common.io import atomic_write_bytes
from vendor_updater.errors import ManifestParseError

DEFAULT_MANIFEST = "dependencies.json"


@dataclass
class FileMapping:
    remote: str  # path inside the published package
    local: str   # path under localBasePath


@dataclass
class DependencyEntry:
    name: str
    version: str
    files: List[FileMapping] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "files": [{"remote": f.remote, "local": f.local} for f in self.files],
        }


@dataclass
class Manifest:
    local_base_path: str
    dependencies: List[DependencyEntry] = field(default_factory=list)
    # unknown top-level keys, written back untouched
    extra: Dict[str, Any] = field(default_factory=dict)

    def find(self, name: str) -> Optional[DependencyEntry]:
        for dep in self.dependencies:
            if dep.name == name:
                return dep
        return None

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = dict(self.extra)
        out["localBasePath"] = self.local_base_path
        out["dependencies"] = [d.to_dict() for d in self.dependencies]
        return out


def _parse_files(raw: Any, where: str) -> List[FileMapping]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ManifestParseError(f"{where}.files must be a list")
    out: List[FileMapping] = []
    for j, f in enumerate(raw):
        if not isinstance(f, dict):
            raise ManifestParseError(f"{where}.files[{j}] must be an object")
        remote, local = f.get("remote"), f.get("local")
        if not isinstance(remote, str) or not remote:
            raise ManifestParseError(f"{where}.files[{j}].remote must be a non-empty string")
        if not isinstance(local, str) or not local:
            raise ManifestParseError(f"{where}.files[{j}].local must be a non-empty string")
        out.append(FileMapping(remote=remote, local=local))
    return out


def parse_manifest(obj: Any) -> Manifest:
    """Validate a decoded JSON object and build a Manifest.

    Rejects duplicate dependency names. A missing or null version loads as
    "" so it never compares equal to a published version.
    """
    if not isinstance(obj, dict):
        raise ManifestParseError("manifest root must be a JSON object")

    base = obj.get("localBasePath")
    if not isinstance(base, str):
        raise ManifestParseError("localBasePath must be a string")

    deps_raw = obj.get("dependencies")
    if not isinstance(deps_raw, list):
        raise ManifestParseError("dependencies must be a list")

    deps: List[DependencyEntry] = []
    seen: set[str] = set()
    for i, d in enumerate(deps_raw):
        where = f"dependencies[{i}]"
        if not isinstance(d, dict):
            raise ManifestParseError(f"{where} must be an object")
        name = d.get("name")
        if not isinstance(name, str) or not name:
            raise ManifestParseError(f"{where}.name must be a non-empty string")
        if name in seen:
            raise ManifestParseError(f"duplicate dependency name: {name!r}")
        seen.add(name)

        version = d.get("version")
        if version is None:
            version = ""
        if not isinstance(version, str):
            raise ManifestParseError(f"{where}.version must be a string")

        deps.append(DependencyEntry(name=name, version=version, files=_parse_files(d.get("files"), where)))

    extra = {k: v for k, v in obj.items() if k not in ("localBasePath", "dependencies")}
    return Manifest(local_base_path=base, dependencies=deps, extra=extra)


def load_manifest(path: Path) -> Manifest:
    if not path.is_file():
        raise ManifestParseError(f"manifest not found: {path}")
    try:
        obj = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as e:
        raise ManifestParseError(f"manifest is not valid JSON: {path}: {e}") from e
    return parse_manifest(obj)


def save_manifest(path: Path, manifest: Manifest) -> None:
    data = orjson.dumps(manifest.to_dict(), option=orjson.OPT_INDENT_2) + b"\n"
    atomic_write_bytes(path, data)
