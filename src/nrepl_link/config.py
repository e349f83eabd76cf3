"""Client configuration.

The relay endpoint lives on the same host and port as the page that serves
the worksheet, under ``/repl``. ``ClientConfig.from_page_url`` performs that
derivation; ``from_url`` accepts a WebSocket URL directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

DEFAULT_PATH = "/repl"
DEFAULT_NAMESPACE = "user"


@dataclass
class ClientConfig:
    """Connection settings for ReplClient."""

    host: str = "localhost"
    port: int = 8990
    path: str = DEFAULT_PATH
    secure: bool = False

    # websockets settings
    open_timeout: float = 10.0
    ping_interval: float | None = 30.0
    ping_timeout: float | None = 10.0

    # Namespace reported before any evaluation completes
    initial_namespace: str = DEFAULT_NAMESPACE

    @property
    def url(self) -> str:
        """WebSocket URL of the relay endpoint."""
        scheme = "wss" if self.secure else "ws"
        return f"{scheme}://{self.host}:{self.port}{self.path}"

    @classmethod
    def from_url(cls, url: str, **overrides: object) -> ClientConfig:
        """Build a config from a ``ws://`` or ``wss://`` URL."""
        parts = urlsplit(url)
        if parts.scheme not in ("ws", "wss"):
            raise ValueError(f"Not a WebSocket URL: {url}")
        secure = parts.scheme == "wss"
        return cls(
            host=parts.hostname or "localhost",
            port=parts.port or (443 if secure else 80),
            path=parts.path or DEFAULT_PATH,
            secure=secure,
            **overrides,  # type: ignore[arg-type]
        )

    @classmethod
    def from_page_url(cls, page_url: str, **overrides: object) -> ClientConfig:
        """Derive the relay endpoint from the URL of the hosting page.

        ``http://localhost:8990/worksheet.html`` maps to
        ``ws://localhost:8990/repl``.
        """
        parts = urlsplit(page_url)
        secure = parts.scheme == "https"
        return cls(
            host=parts.hostname or "localhost",
            port=parts.port or (443 if secure else 80),
            path=DEFAULT_PATH,
            secure=secure,
            **overrides,  # type: ignore[arg-type]
        )
