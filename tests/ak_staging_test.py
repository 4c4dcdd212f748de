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

"""Tests for StagingTree."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from attribkit.errors import AttributionIOError
from attribkit.staging import StagingTree


class TestReset:
    """Tests for StagingTree.reset()."""

    def test_clears_previous_run(self, tmp_path: Path) -> None:
        """Leftovers from an earlier run are removed."""
        root = tmp_path / 'twoliter-attributions'
        (root / 'stale').mkdir(parents=True)
        (root / 'stale' / 'LICENSE').write_text('old', encoding='utf-8')
        staging = StagingTree(root)
        staging.reset()
        assert root.is_dir()
        assert list(root.iterdir()) == []

    def test_creates_missing_parents(self, tmp_path: Path) -> None:
        """reset() creates the root and its parents."""
        staging = StagingTree(tmp_path / 'a' / 'b')
        staging.reset()
        assert staging.root.is_dir()


class TestLayout:
    """Per-source directories."""

    def test_vendor_dir_under_source(self, tmp_path: Path) -> None:
        """Scanner output lives in <source>/vendor."""
        staging = StagingTree(tmp_path / 'stage')
        staging.reset()
        assert staging.vendor_dir('cross') == tmp_path / 'stage' / 'cross' / 'vendor'
        assert (tmp_path / 'stage' / 'cross').is_dir()

    def test_source_names_sorted(self, tmp_path: Path) -> None:
        """source_names() lists directories only, sorted."""
        staging = StagingTree(tmp_path / 'stage')
        staging.reset()
        for name in ('vendor', 'cross', 'cargo-dist'):
            staging.source_dir(name)
        (staging.root / 'COPYRIGHT').write_text('c', encoding='utf-8')
        assert staging.source_names() == ['cargo-dist', 'cross', 'vendor']

    def test_source_names_before_reset(self, tmp_path: Path) -> None:
        """A missing root has no sources."""
        assert StagingTree(tmp_path / 'nope').source_names() == []


class TestCopyInto:
    """Tests for StagingTree.copy_into()."""

    def test_copies_files_and_directories(self, tmp_path: Path) -> None:
        """Files keep their names and directories are copied whole."""
        src = tmp_path / 'src'
        (src / 'rust').mkdir(parents=True)
        (src / 'rust' / 'COPYRIGHT').write_text('rust', encoding='utf-8')
        (src / 'LICENSE-MIT').write_text('mit', encoding='utf-8')
        staging = StagingTree(tmp_path / 'stage')
        staging.reset()
        dest = staging.source_dir('sdk')

        staged = staging.copy_into(dest, [src / 'LICENSE-MIT', src / 'rust'])

        assert staged == [dest / 'LICENSE-MIT', dest / 'rust']
        assert (dest / 'LICENSE-MIT').read_text(encoding='utf-8') == 'mit'
        assert (dest / 'rust' / 'COPYRIGHT').read_text(encoding='utf-8') == 'rust'

    def test_missing_file(self, tmp_path: Path) -> None:
        """A missing license file is an AttributionIOError."""
        staging = StagingTree(tmp_path / 'stage')
        staging.reset()
        with pytest.raises(AttributionIOError, match='license file not found'):
            staging.copy_into(staging.root, [tmp_path / 'LICENSE-APACHE'])

    def test_copy_failure(self, tmp_path: Path) -> None:
        """An OSError during the copy becomes an AttributionIOError."""
        (tmp_path / 'LICENSE').write_text('x', encoding='utf-8')
        staging = StagingTree(tmp_path / 'stage')
        staging.reset()
        with patch('attribkit.staging.shutil.copy2', side_effect=OSError(28, 'No space left on device')):
            with pytest.raises(AttributionIOError, match='No space left'):
                staging.copy_into(staging.root, [tmp_path / 'LICENSE'])


class TestDiscard:
    """Tests for StagingTree.discard()."""

    def test_removes_tree(self, tmp_path: Path) -> None:
        """discard() removes the root."""
        staging = StagingTree(tmp_path / 'stage')
        staging.reset()
        staging.source_dir('vendor')
        staging.discard()
        assert not staging.root.exists()

    def test_missing_root_is_fine(self, tmp_path: Path) -> None:
        """Discarding a tree that never existed is a no-op."""
        StagingTree(tmp_path / 'never').discard()

    def test_failure_is_logged_not_raised(self, tmp_path: Path) -> None:
        """discard() never raises on cleanup errors."""
        staging = StagingTree(tmp_path / 'stage')
        staging.reset()
        with patch('attribkit.staging.shutil.rmtree', side_effect=PermissionError('busy')):
            staging.discard()
        assert staging.root.exists()
