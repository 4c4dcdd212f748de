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

"""The in-progress attribution directory.

Layout::

    <root>/
    ├── COPYRIGHT, LICENSE-*        primary project licenses
    ├── <source>/
    │   ├── vendor/                 scanner output, one dir per dependency
    │   └── LICENSE-*               the source's own extra license files
    └── ...

A staging tree belongs to exactly one pipeline run.
"""

from __future__ import annotations

import shutil
from collections.abc import Sequence
from pathlib import Path

from attribkit.errors import AttributionIOError
from attribkit.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    'StagingTree',
]


class StagingTree:
    """Directory tree assembled across all sources before archiving."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def reset(self) -> None:
        """Clear any previous run's output and recreate an empty root."""
        try:
            if self.root.exists():
                shutil.rmtree(self.root)
            self.root.mkdir(parents=True)
        except OSError as exc:
            raise AttributionIOError(f'cannot reset staging tree {self.root}: {exc}') from exc
        logger.debug('staging_reset', root=str(self.root))

    def source_dir(self, name: str) -> Path:
        """Return (creating it) the staging directory for source *name*."""
        path = self.root / name
        try:
            path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise AttributionIOError(f'cannot create {path}: {exc}') from exc
        return path

    def vendor_dir(self, name: str) -> Path:
        """Return the scanner output directory for source *name*."""
        return self.source_dir(name) / 'vendor'

    def copy_into(self, dest: Path, paths: Sequence[Path]) -> list[Path]:
        """Copy files or directory trees into *dest*, keeping their base names.

        Args:
            dest: Directory inside the staging tree.
            paths: Files or directories to copy, in order.

        Returns:
            The staged paths, in input order.

        Raises:
            AttributionIOError: A listed path is missing or a copy fails.
        """
        staged: list[Path] = []
        for src in paths:
            target = dest / src.name
            try:
                if src.is_dir():
                    shutil.copytree(src, target, dirs_exist_ok=True)
                elif src.is_file():
                    shutil.copy2(src, target)
                else:
                    raise AttributionIOError(f'license file not found: {src}')
            except OSError as exc:
                raise AttributionIOError(f'cannot copy {src} to {dest}: {exc}') from exc
            staged.append(target)
        return staged

    def source_names(self) -> list[str]:
        """Names of the per-source directories currently staged, sorted."""
        if not self.root.is_dir():
            return []
        return sorted(p.name for p in self.root.iterdir() if p.is_dir())

    def discard(self) -> None:
        """Remove the whole tree. Failures are logged, not raised."""
        try:
            shutil.rmtree(self.root)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning('staging_cleanup_failed', root=str(self.root), error=str(exc))
