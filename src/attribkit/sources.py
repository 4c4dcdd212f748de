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

"""Built-in vendor source table and source validation.

The default table attributes twoliter's own crate graph plus the tools
it vendors at pinned revisions::

    ┌──────────────────┬──────────────────────────────────────┬──────────┐
    │ name             │ origin                               │ revision │
    ├──────────────────┼──────────────────────────────────────┼──────────┤
    │ vendor           │ . (the project itself)               │ -        │
    │ cross            │ https://github.com/cross-rs/cross/   │ 7b79041  │
    │ cargo-dist       │ https://github.com/webern/cargo-dist/│ 3dcbe823 │
    │ bottlerocket-sdk │ SDK toolchain license dirs (copy)    │ -        │
    └──────────────────┴──────────────────────────────────────┴──────────┘

:func:`validate_sources` runs before anything touches the network: an
unpinned remote is a moving target and would make the bundle
irreproducible.
"""

from __future__ import annotations

from collections.abc import Sequence

from attribkit._types import VendorSourceSpec
from attribkit.errors import SourceSpecError

__all__ = [
    'DEFAULT_SOURCES',
    'validate_sources',
]

_UPSTREAM_LICENSES: tuple[str, ...] = ('LICENSE-APACHE', 'LICENSE-MIT')

DEFAULT_SOURCES: tuple[VendorSourceSpec, ...] = (
    VendorSourceSpec(name='vendor', origin='.', manifest_path='Cargo.toml'),
    VendorSourceSpec(
        name='cross',
        origin='https://github.com/cross-rs/cross/',
        pinned_revision='7b79041',
        manifest_path='Cargo.toml',
        extra_license_files=_UPSTREAM_LICENSES,
    ),
    VendorSourceSpec(
        name='cargo-dist',
        origin='https://github.com/webern/cargo-dist/',
        pinned_revision='3dcbe823',
        manifest_path='Cargo.toml',
        extra_license_files=_UPSTREAM_LICENSES,
    ),
    VendorSourceSpec(
        name='bottlerocket-sdk',
        origin='/usr/share/licenses',
        manifest_path=None,
        extra_license_files=('rust', 'cargo-make'),
    ),
)


def _validate_one(spec: VendorSourceSpec) -> None:
    name = spec.name
    if not name or not name.strip():
        raise SourceSpecError('source name must be a non-empty string')
    if name in ('.', '..') or '/' in name or '\\' in name:
        raise SourceSpecError(
            f'source name {name!r} is not a plain directory name',
            hint='Names become staging subdirectories; use e.g. "cargo-dist".',
        )
    if not spec.origin:
        raise SourceSpecError(f'source {name!r} has no origin')
    if spec.is_remote and not spec.pinned_revision.strip():
        raise SourceSpecError(
            f'remote source {name!r} ({spec.origin}) has no pinned revision',
            hint='Pin every remote origin to an exact commit so attributions are reproducible.',
        )
    if spec.manifest_path is not None and not spec.manifest_path.strip():
        raise SourceSpecError(f'source {name!r} has an empty manifest path')
    if spec.is_copy_only and not spec.extra_license_files:
        raise SourceSpecError(
            f'source {name!r} has neither a manifest nor extra license files',
            hint='A copy-only source must list at least one file or directory to copy.',
        )


def validate_sources(sources: Sequence[VendorSourceSpec]) -> None:
    """Reject invalid or ambiguous source tables.

    Args:
        sources: The ordered source table for one run.

    Raises:
        SourceSpecError: On the first invalid spec or duplicate name.
    """
    seen: set[str] = set()
    for spec in sources:
        _validate_one(spec)
        if spec.name in seen:
            raise SourceSpecError(f'duplicate source name {spec.name!r}')
        seen.add(spec.name)
