from __future__ import annotations


class UpdaterError(Exception):
    """Base class for every error raised by vendor-updater."""


class ConfigurationError(UpdaterError):
    # Fatal: the run aborts before any mutation.
    pass


class ManifestParseError(ConfigurationError):
    pass


class TransientFetchError(UpdaterError):
    # Registry / CDN failure, scoped to one dependency.
    pass


class SourceControlError(UpdaterError):
    def __init__(self, message: str, *, command: list[str] | None = None, stderr: str = ""):
        super().__init__(message)
        self.command = command or []
        self.stderr = stderr


class ReviewServiceError(UpdaterError):
    pass
