#!/usr/bin/env python3
"""
Hand a generated protocol over to the user agent.

Some user agents (iOS, desktop Safari) ignore a programmatic save of an
object reference, so for them the document is opened in a new viewing
context instead, falling back to in-place navigation when pop-ups are
blocked. Delivery is best effort: a failure here leaves the generated bytes
intact and is reported as a recoverable DeliveryBlocked.

Usage:
    from protocol_delivery import UserAgentCapabilities, LocalDownloadTarget, deliver

    result = deliver(package.content, package.file_name,
                     UserAgentCapabilities(request_user_agent),
                     LocalDownloadTarget("~/Downloads"))
"""

import os
import re
import shutil
import tempfile
import threading
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Protocol, runtime_checkable
from urllib.parse import unquote, urlparse

from logging_config import get_logger
from protocol_errors import DeliveryBlocked

logger = get_logger(__name__)

IOS_PATTERN = re.compile(r"iPad|iPhone|iPod")
# Safari, but not Chrome or Android browsers that also say "Safari"
SAFARI_PATTERN = re.compile(r"^((?!chrome|android).)*safari", re.IGNORECASE)

# Seconds to keep an object reference alive after handing it over
DIRECT_RELEASE_DELAY = 0.1
FALLBACK_RELEASE_DELAY = 10.0


@runtime_checkable
class DownloadCapabilities(Protocol):
    """What the current user agent can do with a generated file."""

    def can_trigger_direct_download(self) -> bool:
        ...


class UserAgentCapabilities:
    """Capabilities derived from a User-Agent header."""

    def __init__(self, user_agent: Optional[str]):
        self.user_agent = user_agent or ""

    @property
    def is_ios(self) -> bool:
        return bool(IOS_PATTERN.search(self.user_agent))

    @property
    def is_safari(self) -> bool:
        return bool(SAFARI_PATTERN.search(self.user_agent))

    def can_trigger_direct_download(self) -> bool:
        return not (self.is_ios or self.is_safari)


@runtime_checkable
class DownloadTarget(Protocol):
    """
    The user agent's file handling primitives.

    create_object_url registers the bytes and returns a reference;
    revoke_object_url releases it.
    """

    def create_object_url(self, data: bytes, file_name: str) -> str:
        ...

    def trigger_save(self, url: str, file_name: str) -> Optional[str]:
        ...

    def open_new_context(self, url: str) -> bool:
        ...

    def navigate(self, url: str) -> None:
        ...

    def revoke_object_url(self, url: str) -> None:
        ...


class LocalDownloadTarget:
    """
    Desktop implementation: object references are temporary files.

    Saving copies the file into a downloads directory; viewing contexts are
    opened with the system web browser.
    """

    def __init__(self, downloads_dir: Optional[str] = None, browser=webbrowser):
        self.downloads_dir = Path(downloads_dir or Path.home() / "Downloads").expanduser()
        self.browser = browser

    def create_object_url(self, data: bytes, file_name: str) -> str:
        suffix = Path(file_name).suffix
        fd, path = tempfile.mkstemp(prefix="protocol_", suffix=suffix)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        return Path(path).as_uri()

    @staticmethod
    def _path_from_url(url: str) -> Path:
        if not url.startswith("file://"):
            raise ValueError(f"Not a local object reference: {url}")
        return Path(unquote(urlparse(url).path))

    def trigger_save(self, url: str, file_name: str) -> str:
        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        destination = self.downloads_dir / Path(file_name).name
        shutil.copyfile(self._path_from_url(url), destination)
        return str(destination)

    def open_new_context(self, url: str) -> bool:
        return bool(self.browser.open_new_tab(url))

    def navigate(self, url: str) -> None:
        if not self.browser.open(url, new=0):
            raise OSError(f"Browser refused to open {url}")

    def revoke_object_url(self, url: str) -> None:
        self._path_from_url(url).unlink(missing_ok=True)


def _schedule_with_timer(delay: float, callback: Callable[[], None]) -> None:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    timer.start()


@dataclass
class DeliveryResult:
    """How the document reached the user."""
    method: str  # "download", "new_context" or "navigation"
    file_name: str
    url: str
    saved_path: Optional[str] = None


def deliver(
    data: bytes,
    suggested_name: str,
    capabilities: DownloadCapabilities,
    target: DownloadTarget,
    schedule: Callable[[float, Callable[[], None]], None] = _schedule_with_timer,
) -> DeliveryResult:
    """
    Deliver document bytes to the user agent.

    Args:
        data: Document bytes
        suggested_name: File name offered to the user
        capabilities: Whether a direct save can be triggered
        target: User agent primitives
        schedule: Runs a callback after a delay (releases the object reference)

    Returns:
        DeliveryResult describing the path taken

    Raises:
        DeliveryBlocked: If no delivery path worked
    """
    try:
        url = target.create_object_url(data, suggested_name)
    except Exception as e:
        raise DeliveryBlocked(f"Cannot create object reference: {e}", suggested_name) from e

    def release() -> None:
        try:
            target.revoke_object_url(url)
        except Exception as e:
            logger.warning(f"Failed to release {url}: {e}")

    if capabilities.can_trigger_direct_download():
        try:
            saved_path = target.trigger_save(url, suggested_name)
        except Exception as e:
            release()
            raise DeliveryBlocked(f"Save was blocked: {e}", suggested_name, method="download") from e
        schedule(DIRECT_RELEASE_DELAY, release)
        logger.info(f"Delivered {suggested_name} as a download")
        return DeliveryResult("download", suggested_name, url, saved_path)

    try:
        opened = target.open_new_context(url)
    except Exception as e:
        logger.warning(f"Opening a new viewing context failed: {e}")
        opened = False

    if opened:
        method = "new_context"
    else:
        logger.warning("New viewing context blocked, navigating in place")
        try:
            target.navigate(url)
        except Exception as e:
            release()
            raise DeliveryBlocked(f"Navigation was blocked: {e}", suggested_name, method="navigation") from e
        method = "navigation"

    schedule(FALLBACK_RELEASE_DELAY, release)
    logger.info(f"Delivered {suggested_name} via {method}")
    return DeliveryResult(method, suggested_name, url)
