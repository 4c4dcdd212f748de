# Copyright 2026 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Shared leaf-level types used across attribkit.

This module must have **zero** imports from other ``attribkit``
modules to avoid circular-import chains.  It is safe to import
from any module in the project.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

__all__ = [
    'VendorSourceSpec',
    'is_remote_origin',
]

_URL_SCHEMES: Final[tuple[str, ...]] = ('https://', 'http://', 'ssh://', 'git://', 'file://')

#: scp-style git remotes, e.g. ``git@github.com:cross-rs/cross.git``.
_SCP_REMOTE_RE: Final[re.Pattern[str]] = re.compile(r'^[\w.-]+@[\w.-]+:(?!//)')


def is_remote_origin(origin: str) -> bool:
    """Return ``True`` if *origin* names a repository to clone."""
    return origin.startswith(_URL_SCHEMES) or bool(_SCP_REMOTE_RE.match(origin))


@dataclass(frozen=True)
class VendorSourceSpec:
    """One entity whose dependencies must be attributed.

    Attributes:
        name: Stable identifier, also the subdirectory name under the
            staging tree (e.g. ``"cross"``).
        origin: Local path (the project itself) or a remote repository
            URL to clone.
        pinned_revision: Exact commit the remote is reset to. Required
            for remote origins.
        manifest_path: Dependency manifest to scan, relative to the
            fetched source root. ``None`` for copy-only sources.
        extra_license_files: Paths copied verbatim into the source's
            staging directory, in order. Relative paths resolve against
            the fetched source root.
    """

    name: str
    origin: str
    pinned_revision: str = ''
    manifest_path: str | None = 'Cargo.toml'
    extra_license_files: tuple[str, ...] = ()

    @property
    def is_remote(self) -> bool:
        """``True`` if the origin must be cloned before scanning."""
        return is_remote_origin(self.origin)

    @property
    def is_copy_only(self) -> bool:
        """``True`` if the source contributes files but is never scanned."""
        return self.manifest_path is None

    def describe(self) -> str:
        """Short ``origin@revision`` label for logs and reports."""
        if self.is_remote:
            return f'{self.origin}@{self.pinned_revision or "<unpinned>"}'
        return self.origin
