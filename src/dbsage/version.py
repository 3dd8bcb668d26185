"""Release checking.

Compares the running version against the latest GitHub release and, from
the interactive UI, notifies once in the background when an update exists.
"""

import asyncio
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

from . import __version__
from .core.exceptions import ErrorCodes, UpdateCheckError, ValidationError
from .core.utils import with_deadline
from .logging import get_logger

GITHUB_API = "https://api.github.com"
DEFAULT_OWNER = "murongg"
DEFAULT_REPO = "dbsage"
DEV_VERSION = "dev"
REQUEST_TIMEOUT = 10.0

_VERSION_PATTERN = re.compile(r"^v?(\d+)\.(\d+)\.(\d+)$")

logger = get_logger("version")


def parse_version(version: str) -> Tuple[int, int, int]:
    """``"v1.2.3"`` -> ``(1, 2, 3)``.

    Raises:
        ValidationError: Unless the value is ``M.m.p`` with an optional ``v``
    """
    match = _VERSION_PATTERN.match(version.strip()) if isinstance(version, str) else None
    if not match:
        raise ValidationError(
            f"Invalid version format: {version!r}",
            code=ErrorCodes.INVALID_ARGUMENT,
            context={"version": version},
        )
    major, minor, patch = (int(part) for part in match.groups())
    return major, minor, patch


def compare_versions(a: str, b: str) -> int:
    """-1, 0 or 1 as ``a`` is older than, equal to or newer than ``b``."""
    left, right = parse_version(a), parse_version(b)
    return (left > right) - (left < right)


def is_newer_version(current: str, latest: str) -> bool:
    """True if ``latest`` is newer than ``current``. A ``dev`` build is never outdated."""
    if current == DEV_VERSION:
        return False
    return compare_versions(latest, current) > 0


@dataclass(frozen=True)
class UpdateInfo:
    current_version: str
    latest_version: str
    has_update: bool
    release_url: str = ""
    release_notes: str = ""
    published_at: str = ""


class ReleaseChecker:
    """Look up the latest published release of a GitHub repository.

    Example:
        >>> checker = ReleaseChecker(current_version="0.1.0")
        >>> info = await checker.check()
        >>> if info and info.has_update:
        ...     print(f"dbsage {info.latest_version} is available")
    """

    def __init__(
        self,
        owner: str = DEFAULT_OWNER,
        repo: str = DEFAULT_REPO,
        current_version: str = __version__,
        *,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.owner = owner
        self.repo = repo
        self.current_version = current_version
        self._client = client

    @property
    def url(self) -> str:
        return f"{GITHUB_API}/repos/{self.owner}/{self.repo}/releases/latest"

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": f"dbsage/{self.current_version}",
        }

    async def fetch_latest(self) -> Optional[Dict[str, Any]]:
        """Latest published release document, or ``None`` if there is none.

        Raises:
            UpdateCheckError: On network failures and unexpected responses
        """
        try:
            if self._client is not None:
                response = await self._client.get(self.url, headers=self.headers)
            else:
                async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                    response = await client.get(self.url, headers=self.headers)
        except httpx.HTTPError as e:
            raise UpdateCheckError(
                f"Failed to fetch release info: {e}",
                code=ErrorCodes.UPDATE_CHECK_FAILED,
                context={"url": self.url},
                cause=e,
            ) from e

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            raise UpdateCheckError(
                f"GitHub API returned status {response.status_code}",
                code=ErrorCodes.UPDATE_CHECK_FAILED,
                context={"url": self.url, "status_code": response.status_code},
            )

        try:
            release = response.json()
        except ValueError as e:
            raise UpdateCheckError(
                f"Failed to parse release info: {e}",
                code=ErrorCodes.UPDATE_CHECK_FAILED,
                context={"url": self.url},
                cause=e,
            ) from e

        if not isinstance(release, dict) or release.get("draft") or release.get("prerelease"):
            return None
        return release

    async def check(self) -> Optional[UpdateInfo]:
        """Compare the running version with the latest release.

        Returns ``None`` when no release is published.
        """
        release = await self.fetch_latest()
        if release is None:
            return None

        latest = release.get("tag_name", "")
        try:
            has_update = is_newer_version(self.current_version, latest)
        except ValidationError as e:
            raise UpdateCheckError(
                f"Cannot compare versions: {e.message}",
                code=ErrorCodes.UPDATE_CHECK_FAILED,
                context={"current": self.current_version, "latest": latest},
                cause=e,
            ) from e

        return UpdateInfo(
            current_version=self.current_version,
            latest_version=latest,
            has_update=has_update,
            release_url=release.get("html_url", ""),
            release_notes=release.get("body") or "",
            published_at=release.get("published_at") or "",
        )


class UpdateNotifier:
    """One-shot background update check.

    Waits ``delay`` seconds, checks under ``deadline`` and calls ``callback``
    once if an update exists. Failures are logged and dropped.
    """

    def __init__(
        self,
        checker: ReleaseChecker,
        callback: Callable[[UpdateInfo], Any],
        *,
        delay: float = 3,
        deadline: float = 30,
    ) -> None:
        self.checker = checker
        self.callback = callback
        self.delay = delay
        self.deadline = deadline
        self._task: Optional["asyncio.Task[None]"] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> "asyncio.Task[None]":
        """Schedule the check on the running loop. Starting twice is a no-op."""
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        try:
            info = await with_deadline(self.checker.check(), self.deadline, operation="update check")
        except Exception as e:
            logger.warning("Update check failed", error=str(e))
            return

        if info is not None and info.has_update:
            logger.info("Update available", current=info.current_version, latest=info.latest_version)
            self.callback(info)

    async def stop(self) -> None:
        """Cancel the check if it is still pending."""
        if self._task is None or self._task.done():
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
