from __future__ import annotations


class ConfigError(RuntimeError):
    """Raised when configuration is missing or invalid."""


class ArchiveError(RuntimeError):
    """Base class for failures that abort a crawl or resolution run."""


class TransportError(ArchiveError):
    """Raised when an HTTP request to the instance fails at the network layer."""


class DecodeError(ArchiveError):
    """
    Raised when a response body does not decode into the expected shape.

    Carries the raw body, the HTTP status and the structural path of the first
    failing location so the operator can diagnose the response.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        body: str,
        path: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.body = body
        self.path = path

    def diagnostic_lines(self) -> list[str]:
        return [
            f"ERROR: {self}",
            f"status: {self.status_code}",
            f"path: {self.path or '<root>'}",
            f"raw: {self.body}",
        ]
