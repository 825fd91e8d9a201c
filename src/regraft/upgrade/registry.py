"""Package registry lookups.

Queries the npm registry's ``/<package>/latest`` document for the most
recently published version of the generator or a blueprint.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol
from urllib.parse import quote

import httpx

from regraft.upgrade.exceptions import NetworkError

logger = logging.getLogger(__name__)


class VersionLookup(Protocol):
    """Protocol for anything that can report a package's latest version."""

    def latest_version(self, package: str) -> str:
        ...  # pragma: no cover


class RegistryClient:
    """HTTP client for an npm-compatible registry.

    Args:
        base_url: Registry root, e.g. ``https://registry.npmjs.org``.
        timeout: Request timeout in seconds.
        client: Optional pre-built :class:`httpx.Client` (used by tests to
            inject a mock transport).
    """

    def __init__(
        self,
        base_url: str = "https://registry.npmjs.org",
        timeout: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(timeout=timeout, follow_redirects=True)

    def latest_version(self, package: str) -> str:
        """Return the latest published version of *package*.

        Raises:
            NetworkError: On transport errors, non-2xx responses or a
                malformed document.
        """
        url = f"{self._base_url}/{quote(package, safe='@')}/latest"
        logger.debug("GET %s", url)
        try:
            response = self._client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise NetworkError(package, f"registry returned HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(package, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            raise NetworkError(package, f"invalid registry response: {exc}") from exc

        version = payload.get("version") if isinstance(payload, dict) else None
        if not isinstance(version, str) or not version:
            raise NetworkError(package, "registry response has no 'version' field")
        return version

    def close(self) -> None:
        self._client.close()
