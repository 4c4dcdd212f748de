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

"""Deterministic ``tar.gz`` packaging of a finished staging tree.

Identical staging content always yields a byte-identical archive:

- entries are added in sorted path order under ``<root basename>/``;
- mtimes are pinned to ``SOURCE_DATE_EPOCH`` (or 0), owners to
  ``0:0`` with empty names, and modes to ``0755``/``0644``;
- the gzip header carries no filename and a zero timestamp.

The archive is written to a temporary file next to the output and
moved into place with :func:`os.replace`, so the published path either
holds a complete archive or nothing at all.
"""

from __future__ import annotations

import gzip
import os
import stat
import tarfile
import tempfile
from collections.abc import Iterator
from pathlib import Path

from attribkit.errors import AttributionIOError
from attribkit.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    'ArchiveBuilder',
    'source_date_epoch',
]


def source_date_epoch() -> int:
    """Return ``SOURCE_DATE_EPOCH`` as an int, or 0 when unset or invalid."""
    raw = os.environ.get('SOURCE_DATE_EPOCH', '')
    try:
        return max(int(raw), 0)
    except ValueError:
        return 0


def _walk(root: Path) -> Iterator[Path]:
    """Yield *root* and everything below it in sorted, depth-first order."""
    yield root
    if root.is_symlink() or not root.is_dir():
        return
    for child in sorted(root.iterdir(), key=lambda p: p.name):
        yield from _walk(child)


class ArchiveBuilder:
    """Packages a staging root into a single reproducible archive."""

    def __init__(self, *, mtime: int | None = None, compresslevel: int = 9) -> None:
        self.mtime = source_date_epoch() if mtime is None else mtime
        self.compresslevel = compresslevel

    def _normalize(self, info: tarfile.TarInfo) -> tarfile.TarInfo:
        info.mtime = self.mtime
        info.uid = info.gid = 0
        info.uname = info.gname = ''
        if info.issym():
            info.mode = 0o777
        elif info.isdir() or info.mode & stat.S_IXUSR:
            info.mode = 0o755
        else:
            info.mode = 0o644
        return info

    def _write(self, root: Path, fileobj: gzip.GzipFile) -> int:
        count = 0
        with tarfile.open(fileobj=fileobj, mode='w', format=tarfile.PAX_FORMAT) as tar:
            for path in _walk(root):
                arcname = Path(root.name, path.relative_to(root)).as_posix()
                info = self._normalize(tar.gettarinfo(str(path), arcname))
                if info.isreg():
                    with path.open('rb') as fh:
                        tar.addfile(info, fh)
                else:
                    tar.addfile(info)
                count += 1
        return count

    def build(self, root: Path, output: Path) -> Path:
        """Compress *root* into *output*.

        Args:
            root: Finished staging root. Its base name becomes the
                archive's single top-level entry.
            output: Published archive path.

        Returns:
            *output*.

        Raises:
            AttributionIOError: On any filesystem or tar failure. The
                temporary file is removed and *output* is untouched.
        """
        if not root.is_dir():
            raise AttributionIOError(f'staging root not found: {root}')

        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=f'.{output.name}.', suffix='.tmp', dir=output.parent)
        except OSError as exc:
            raise AttributionIOError(f'cannot create temporary archive for {output}: {exc}') from exc

        tmp = Path(tmp_name)
        try:
            with os.fdopen(fd, 'wb') as raw:
                with gzip.GzipFile(
                    filename='',
                    mode='wb',
                    fileobj=raw,
                    compresslevel=self.compresslevel,
                    mtime=0,
                ) as gz:
                    count = self._write(root, gz)
            # mkstemp creates 0600 files.
            tmp.chmod(0o644)
            os.replace(tmp, output)
        except BaseException as exc:
            try:
                tmp.unlink(missing_ok=True)
            except OSError as cleanup_exc:
                logger.warning('archive_tmp_cleanup_failed', path=str(tmp), error=str(cleanup_exc))
            if isinstance(exc, (OSError, tarfile.TarError)):
                raise AttributionIOError(f'cannot write archive {output}: {exc}') from exc
            raise

        logger.info('archive_written', path=str(output), entries=count, top_level=root.name)
        return output
