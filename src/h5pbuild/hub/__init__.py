# Copyright 2026 H5PBuild Contributors
# SPDX-License-Identifier: Apache-2.0

"""Remote library source backed by the H5P Hub."""

from h5pbuild.hub.client import DEFAULT_HUB_URL, DEFAULT_TIMEOUT, HubClient, HubError, HubFetcher

__all__ = [
    "DEFAULT_HUB_URL",
    "DEFAULT_TIMEOUT",
    "HubClient",
    "HubError",
    "HubFetcher",
]
