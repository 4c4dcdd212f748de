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

"""Materialize vendor sources on disk at their pinned revision.

Local origins are used in place. Remote origins are cloned into a
fresh scratch directory and force-reset to the pinned commit::

    ┌──────────────┐  git clone  ┌──────────────────────┐  git reset --hard  ┌────────────┐
    │ origin URL   │────────────→│ <tmp>/attribkit-x-*/ │───────────────────→│ pinned tree│
    └──────────────┘             └──────────────────────┘                    └────────────┘

Two fetches of the same origin and revision produce the same tree,
which is what makes the attribution bundle reproducible.
"""

from __future__ import annotations

import shutil
import tempfile
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path

from attribkit._process import CommandRunner, run_command
from attribkit._types import VendorSourceSpec
from attribkit.errors import FetchError
from attribkit.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    'FetchedSource',
    'SourceFetcher',
]


@dataclass(frozen=True)
class FetchedSource:
    """A source tree ready to be scanned.

    Attributes:
        spec: The source this tree was fetched for.
        root: Root of the checked-out tree.
        scratch_dir: Scratch directory owning *root*, or ``None`` when
            the source is a local path that must not be removed.
    """

    spec: VendorSourceSpec
    root: Path
    scratch_dir: Path | None = None

    @property
    def is_scratch(self) -> bool:
        """``True`` if :meth:`SourceFetcher.release` will delete the tree."""
        return self.scratch_dir is not None


class SourceFetcher:
    """Clone-and-pin fetcher for :class:`VendorSourceSpec` origins."""

    def __init__(
        self,
        project_root: Path,
        *,
        scratch_root: Path | None = None,
        env: Mapping[str, str] | None = None,
        git: str = 'git',
        runner: CommandRunner = run_command,
    ) -> None:
        self.project_root = project_root
        self.scratch_root = scratch_root
        self.env = env
        self.git = git
        self._run = runner

    def fetch(self, spec: VendorSourceSpec) -> FetchedSource:
        """Return the source tree for *spec*, cloning it if remote.

        Raises:
            FetchError: The local path is missing, the clone failed or
                the pinned revision does not exist upstream.
        """
        if not spec.is_remote:
            return self._fetch_local(spec)
        return self._fetch_remote(spec)

    def release(self, fetched: FetchedSource) -> None:
        """Delete the scratch clone behind *fetched*, if any.

        Cleanup failures are logged and otherwise ignored.
        """
        if fetched.scratch_dir is None:
            return
        try:
            shutil.rmtree(fetched.scratch_dir)
        except OSError as exc:
            logger.warning(
                'scratch_cleanup_failed',
                source=fetched.spec.name,
                path=str(fetched.scratch_dir),
                error=str(exc),
            )
        else:
            logger.debug('scratch_removed', source=fetched.spec.name, path=str(fetched.scratch_dir))

    def _fetch_local(self, spec: VendorSourceSpec) -> FetchedSource:
        root = Path(spec.origin)
        if not root.is_absolute():
            root = self.project_root / root
        root = root.resolve()
        if not root.is_dir():
            raise FetchError('local source directory not found', origin=str(root))
        logger.info('source_local', source=spec.name, path=str(root))
        return FetchedSource(spec=spec, root=root)

    def _fetch_remote(self, spec: VendorSourceSpec) -> FetchedSource:
        revision = spec.pinned_revision
        try:
            scratch = Path(tempfile.mkdtemp(prefix=f'attribkit-{spec.name}-', dir=self.scratch_root))
        except OSError as exc:
            raise FetchError(
                f'cannot create scratch directory ({exc})',
                origin=spec.origin,
                revision=revision,
            ) from exc

        checkout = scratch / spec.name
        fetched = FetchedSource(spec=spec, root=checkout, scratch_dir=scratch)
        try:
            logger.info('source_cloning', source=spec.name, origin=spec.origin, revision=revision)
            self._git(spec, ['clone', '--quiet', spec.origin, str(checkout)], cwd=scratch, what='clone failed')
            self._git(spec, ['reset', '--quiet', '--hard', revision], cwd=checkout, what='revision not found')
            head = self._git(spec, ['rev-parse', 'HEAD'], cwd=checkout, what='cannot resolve HEAD').strip()
            if not head.lower().startswith(revision.lower()):
                raise FetchError(
                    f'checkout resolved to {head}, not the pinned commit',
                    origin=spec.origin,
                    revision=revision,
                    hint='Pin an exact commit hash, not a branch or tag name.',
                )
        except FetchError:
            self.release(fetched)
            raise

        logger.info('source_fetched', source=spec.name, revision=revision, head=head, path=str(checkout))
        return fetched

    def _git(self, spec: VendorSourceSpec, args: Sequence[str], *, cwd: Path, what: str) -> str:
        argv = [self.git, *args]
        try:
            proc = self._run(argv, cwd=cwd, env=self.env)
        except OSError as exc:
            raise FetchError(
                f'cannot run {self.git} ({exc})',
                origin=spec.origin,
                revision=spec.pinned_revision,
                hint='Install git in the attribution environment.',
            ) from exc
        if proc.returncode != 0:
            raise FetchError(
                what,
                origin=spec.origin,
                revision=spec.pinned_revision,
                stderr=proc.stderr or '',
            )
        return proc.stdout or ''
