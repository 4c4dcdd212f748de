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

"""Adapter for the external license scanner.

The scanner walks a manifest's dependency graph, applies the shared
clarification file and writes one license directory per dependency
into ``--out-dir``. attribkit never reimplements it; this module only
builds the command line and maps the exit status onto
:class:`~attribkit.errors.ScanError`::

    <scanner> --clarify <clarify.toml> --spdx-data <dir> --out-dir <out> \\
        cargo --locked <Cargo.toml>
"""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Final

from attribkit._process import CommandRunner, run_command
from attribkit.errors import ScanError
from attribkit.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    'DEFAULT_SCANNER',
    'DEFAULT_SPDX_DATA',
    'LicenseScanInvoker',
]

DEFAULT_SCANNER: Final[str] = '/usr/libexec/tools/bottlerocket-license-scan'
DEFAULT_SPDX_DATA: Final[str] = '/usr/libexec/tools/spdx-data'


class LicenseScanInvoker:
    """Runs the license scanner against one manifest at a time.

    Attributes:
        scanner: Path or name of the scanner executable.
        spdx_data: Directory of SPDX license data handed to the scanner.
        ecosystem: Package-manager mode keyword (``cargo``).
        locked: Pass ``--locked`` so the scan fails on a stale lockfile.
    """

    def __init__(
        self,
        scanner: str = DEFAULT_SCANNER,
        *,
        spdx_data: Path = Path(DEFAULT_SPDX_DATA),
        ecosystem: str = 'cargo',
        locked: bool = True,
        env: Mapping[str, str] | None = None,
        runner: CommandRunner = run_command,
    ) -> None:
        self.scanner = scanner
        self.spdx_data = spdx_data
        self.ecosystem = ecosystem
        self.locked = locked
        self.env = env
        self._run = runner

    def command(self, manifest_path: Path, clarify_file: Path, output_dir: Path) -> list[str]:
        """Return the scanner argv for one manifest.

        Every path is absolute; the scanner runs in the manifest directory.
        """
        argv = [
            self.scanner,
            '--clarify',
            str(clarify_file.resolve()),
            '--spdx-data',
            str(self.spdx_data.resolve()),
            '--out-dir',
            str(output_dir.resolve()),
            self.ecosystem,
        ]
        if self.locked:
            argv.append('--locked')
        argv.append(str(manifest_path.resolve()))
        return argv

    def scan(self, manifest_path: Path, clarify_file: Path, output_dir: Path) -> None:
        """Scan *manifest_path* and write per-dependency licenses to *output_dir*.

        Args:
            manifest_path: Dependency manifest (e.g. ``Cargo.toml``).
            clarify_file: Clarification file shared by every scan.
            output_dir: Directory the scanner populates.

        Raises:
            ScanError: The manifest or clarification file is missing,
                the scanner could not be started, or it exited non-zero.
                Captured stderr is attached.
        """
        manifest = str(manifest_path)
        if not manifest_path.is_file():
            raise ScanError('manifest not found', manifest=manifest)
        if not clarify_file.is_file():
            raise ScanError(
                f'clarification file not found: {clarify_file}',
                manifest=manifest,
                hint='Point [attribution].clarify at the project clarify.toml.',
            )

        argv = self.command(manifest_path, clarify_file, output_dir)
        logger.info('scan_started', manifest=manifest, out_dir=str(output_dir))
        try:
            proc = self._run(argv, cwd=manifest_path.resolve().parent, env=self.env)
        except OSError as exc:
            raise ScanError(
                f'cannot run license scanner {self.scanner} ({exc})',
                manifest=manifest,
                hint='Run inside the SDK image or set ATTRIBKIT_SCANNER.',
            ) from exc

        if proc.returncode != 0:
            logger.error('scan_failed', manifest=manifest, returncode=proc.returncode)
            raise ScanError(
                'license scan failed',
                manifest=manifest,
                returncode=proc.returncode,
                stderr=proc.stderr or '',
            )
        logger.info('scan_finished', manifest=manifest)
