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

"""Shared fakes for the git and license-scanner subprocess boundaries."""

from __future__ import annotations

import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

import pytest

# ── Fake git ─────────────────────────────────────────────────────────

CROSS_URL = 'https://github.com/cross-rs/cross/'
CARGO_DIST_URL = 'https://github.com/webern/cargo-dist/'
CROSS_SHA = '7b79041' + 'a' * 33
CARGO_DIST_SHA = '3dcbe823' + 'b' * 32

_UPSTREAM_FILES: dict[str, str] = {
    'LICENSE-APACHE': 'Apache License 2.0\n',
    'LICENSE-MIT': 'MIT License\n',
}


def _done(argv: Sequence[str], returncode: int = 0, stdout: str = '', stderr: str = '') -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(list(argv), returncode, stdout, stderr)


class FakeGit:
    """Stands in for ``git clone`` / ``reset --hard`` / ``rev-parse HEAD``.

    *repos* maps origin URL to ``(full_sha, {relative path: content})``.
    """

    def __init__(self, repos: Mapping[str, tuple[str, Mapping[str, str]]]) -> None:
        self.repos = dict(repos)
        self.calls: list[list[str]] = []
        self._clones: dict[Path, str] = {}
        self._heads: dict[Path, str] = {}

    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        self.calls.append(list(argv))
        command = argv[1]
        if command == 'clone':
            origin, dest = argv[-2], Path(argv[-1])
            if origin not in self.repos:
                return _done(argv, 128, stderr=f"fatal: repository '{origin}' not found\n")
            _, files = self.repos[origin]
            for rel, text in files.items():
                target = dest / rel
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(text, encoding='utf-8')
            self._clones[dest] = origin
            return _done(argv)
        assert cwd is not None
        if command == 'reset':
            revision = argv[-1]
            sha, _ = self.repos[self._clones[cwd]]
            if not sha.startswith(revision):
                return _done(argv, 128, stderr=f"fatal: ambiguous argument '{revision}': unknown revision\n")
            self._heads[cwd] = sha
            return _done(argv)
        if command == 'rev-parse':
            return _done(argv, stdout=self._heads[cwd] + '\n')
        raise AssertionError(f'unexpected git command: {argv}')

    def cloned(self) -> list[str]:
        """Origins passed to ``git clone``, in order."""
        return [call[-2] for call in self.calls if call[1] == 'clone']


def upstream_repo(sha: str, deps: str) -> tuple[str, dict[str, str]]:
    """An upstream repo with a manifest listing *deps* and two license files."""
    return sha, {'Cargo.toml': deps, **_UPSTREAM_FILES}


# ── Fake scanner ─────────────────────────────────────────────────────


class FakeScanner:
    """Stands in for the license scanner binary.

    Reads ``name = "version"`` lines from the manifest and writes one
    ``<name>-<version>/LICENSE`` per dependency under ``--out-dir``.
    Manifests whose parent directory name is in *fail_for* exit 101.
    """

    def __init__(self, fail_for: Sequence[str] = ()) -> None:
        self.fail_for = set(fail_for)
        self.calls: list[list[str]] = []

    def __call__(
        self,
        argv: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        capture: bool = True,
    ) -> subprocess.CompletedProcess[str]:
        self.calls.append(list(argv))
        # Relative paths resolve against the child's working directory.
        base = cwd or Path.cwd()
        manifest = base / argv[-1]
        out_dir = base / argv[argv.index('--out-dir') + 1]
        if manifest.parent.name in self.fail_for:
            return _done(argv, 101, stderr='error: license for crate `mystery` is ambiguous\n')
        for line in manifest.read_text(encoding='utf-8').splitlines():
            if '=' not in line or line.startswith('['):
                continue
            name, version = (part.strip().strip('"') for part in line.split('=', 1))
            dep_dir = out_dir / f'{name}-{version}'
            dep_dir.mkdir(parents=True, exist_ok=True)
            (dep_dir / 'LICENSE').write_text(f'license text for {name} {version}\n', encoding='utf-8')
        return _done(argv)

    def scanned(self) -> list[str]:
        """Manifest paths scanned, in order."""
        return [call[-1] for call in self.calls]


# ── Project fixture ──────────────────────────────────────────────────


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A twoliter-like project root with a manifest, clarify file and licenses."""
    root = tmp_path / 'twoliter'
    root.mkdir()
    (root / 'Cargo.toml').write_text('[dependencies]\nanyhow = "1.0.86"\nserde = "1.0.203"\n', encoding='utf-8')
    (root / 'clarify.toml').write_text('[clarify.ring]\nexpression = "MIT AND ISC AND OpenSSL"\n', encoding='utf-8')
    (root / 'COPYRIGHT').write_text('Copyright Amazon.com, Inc.\n', encoding='utf-8')
    (root / 'LICENSE-MIT').write_text('MIT License\n', encoding='utf-8')
    (root / 'LICENSE-APACHE').write_text('Apache License 2.0\n', encoding='utf-8')
    return root


@pytest.fixture
def fake_git() -> FakeGit:
    """Git fake serving the cross and cargo-dist upstreams."""
    return FakeGit({
        CROSS_URL: upstream_repo(CROSS_SHA, '[dependencies]\nclap = "4.5.4"\n'),
        CARGO_DIST_URL: upstream_repo(CARGO_DIST_SHA, '[dependencies]\naxoasset = "0.9.0"\ncamino = "1.1.7"\n'),
    })
