# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Download of content-type packages from the H5P Hub.

The hub is the remote source consulted when the local cache lacks a library.
:class:`HubFetcher` stores every download in the cache directory as
``Name-M.m.h5p`` so that later builds, and the assembler of the current
build, find it there.
"""

from __future__ import annotations

import io
import logging
import zipfile
from pathlib import Path

import requests

from h5pbuild.cache.archive import CacheError, library_directories, main_library_directory, read_library
from h5pbuild.cache.store import ARCHIVE_SUFFIX
from h5pbuild.compiler.resolver import FetchedLibrary

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############

DEFAULT_HUB_URL = "https://api.h5p.org/v1/"
DEFAULT_TIMEOUT = 30


class HubError(Exception):
    """Raised when the hub cannot be reached or returns an unusable package."""


class HubClient:
    """Thin client for the hub's ``content-types`` endpoint.

    Args:
        base_url: Hub API root, ending with a slash.
        timeout: Request timeout in seconds.
    """

    def __init__(self, base_url: str = DEFAULT_HUB_URL, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.timeout = timeout

    def download(self, machine_name: str) -> bytes | None:
        """Download the package for *machine_name*.

        The hub only serves downloads to POST requests.

        Returns:
            The raw ``.h5p`` bytes, or ``None`` if the hub does not know the library.

        Raises:
            HubError: On transport errors or any status other than 200 and 404.
        """
        url = f"{self.base_url}content-types/{machine_name}"
        logger.debug("POST %s", url)
        try:
            response = requests.post(url, timeout=self.timeout)
        except requests.Timeout:
            raise HubError(f"Downloading {machine_name} timed out after {self.timeout} seconds") from None
        except requests.RequestException as exc:
            raise HubError(f"Cannot download {machine_name} from {url}: {exc}") from exc

        if response.status_code == 404:
            logger.info("Hub has no content type named %s", machine_name)
            return None
        if response.status_code != 200:
            raise HubError(f"Could not download {machine_name} from the hub: HTTP {response.status_code}")
        logger.info("Downloaded %s (%d bytes)", machine_name, len(response.content))
        return response.content


class HubFetcher:
    """Library source backed by the hub that persists downloads into the cache.

    Args:
        client: The hub client.
        cache_directory: Directory downloads are written to.
    """

    def __init__(self, client: HubClient, cache_directory: Path) -> None:
        self._client = client
        self._cache_directory = Path(cache_directory)

    def fetch(self, machine_name: str) -> FetchedLibrary | None:
        """Download *machine_name* and store it as ``Name-M.m.h5p`` in the cache.

        Raises:
            HubError: If the download fails or the package has no readable main library.
        """
        data = self._client.download(machine_name)
        if data is None:
            return None

        try:
            with zipfile.ZipFile(io.BytesIO(data)) as archive:
                directory = main_library_directory(archive) or _single_directory(archive, machine_name)
                metadata = read_library(archive, directory)
        except zipfile.BadZipFile as exc:
            raise HubError(f"Hub returned an invalid package for {machine_name}: {exc}") from exc
        except CacheError as exc:
            raise HubError(f"Hub package for {machine_name} is unreadable: {exc}") from exc

        file_name = f"{metadata.machine_name}-{metadata.version.version}{ARCHIVE_SUFFIX}"
        target = self._cache_directory / file_name
        try:
            self._cache_directory.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as exc:
            raise HubError(f"Cannot store {file_name} in the cache: {exc}") from exc
        logger.info("Stored %s %s in the cache as %s", metadata.machine_name, metadata.full_version, file_name)
        return FetchedLibrary(metadata=metadata, archive=data, file_name=file_name)


# ################
# Implementation
# ################


def _single_directory(archive: zipfile.ZipFile, machine_name: str) -> str:
    directories = library_directories(archive)
    if len(directories) != 1:
        raise CacheError(f"Package for {machine_name} has no h5p.json and {len(directories)} library directories")
    return directories[0]
