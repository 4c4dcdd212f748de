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

"""Configuration loading for attribkit.

Configuration lives in ``attribution.toml`` at the project root. Every
key is optional; without a file the defaults reproduce twoliter's
attribution run inside the Bottlerocket SDK image.

Resolution order (highest wins)::

    ATTRIBKIT_* env vars  →  attribution.toml  →  built-in defaults

Example::

    [attribution]
    clarify = "clarify.toml"
    output = "twoliter-attributions.tar.gz"
    toolchain_home = "/home/attribution-creator"

    [[attribution.source]]
    name = "cross"
    origin = "https://github.com/cross-rs/cross/"
    revision = "7b79041"
    extra_files = ["LICENSE-APACHE", "LICENSE-MIT"]

    [checks]
    lint = ["cargo", "clippy", "--locked", "--", "-D", "warnings", "--no-deps"]
"""

from __future__ import annotations

import os
import sys
import tempfile
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Final

from attribkit._types import VendorSourceSpec
from attribkit.errors import ConfigError
from attribkit.logging import get_logger
from attribkit.scan import DEFAULT_SCANNER, DEFAULT_SPDX_DATA
from attribkit.sources import DEFAULT_SOURCES

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

logger = get_logger(__name__)

__all__ = [
    'CONFIG_FILENAME',
    'DEFAULT_CHECK_COMMANDS',
    'STEP_NAMES',
    'AttributionConfig',
    'ChecksConfig',
    'ProjectConfig',
    'load_config',
]

CONFIG_FILENAME: Final[str] = 'attribution.toml'

#: Gate steps in execution order.
STEP_NAMES: Final[tuple[str, ...]] = (
    'format',
    'lint',
    'dependency-policy',
    'attribution',
    'unit-test',
    'integration-test',
)

#: Commands for every command-backed step, plus the release build.
DEFAULT_CHECK_COMMANDS: Final[Mapping[str, tuple[str, ...]]] = {
    'format': ('cargo', 'fmt', '--check'),
    'lint': ('cargo', 'clippy', '--locked', '--', '-D', 'warnings', '--no-deps'),
    'dependency-policy': ('cargo', 'deny', '--no-default-features', 'check', 'licenses', 'bans', 'sources'),
    'unit-test': ('cargo', 'test', '--release', '--locked'),
    'integration-test': (
        'cargo',
        'test',
        '--manifest-path',
        'tests/integration-tests/Cargo.toml',
        '--',
        '--include-ignored',
    ),
    'build': ('cargo', 'build', '--release', '--locked'),
}

_DEFAULT_PROJECT_LICENSES: Final[tuple[str, ...]] = ('COPYRIGHT', 'LICENSE-MIT', 'LICENSE-APACHE')

_ENV_OVERRIDES: Final[Mapping[str, str]] = {
    'ATTRIBKIT_SCANNER': 'scanner',
    'ATTRIBKIT_SPDX_DATA': 'spdx_data',
    'ATTRIBKIT_TOOLCHAIN_HOME': 'toolchain_home',
    'ATTRIBKIT_STAGING_DIR': 'staging_dir',
}


@dataclass(frozen=True)
class AttributionConfig:
    """The ``[attribution]`` section.

    Attributes:
        bundle_name: Base name of the staging root, and therefore the
            archive's top-level directory.
        output: Archive path, relative to the project root.
        clarify: Clarification file shared by every scan.
        scanner: License scanner executable.
        spdx_data: SPDX data directory handed to the scanner.
        ecosystem: Scanner package-manager mode.
        locked: Require an up-to-date lockfile when scanning.
        toolchain_home: ``HOME`` for git and the scanner; empty keeps
            the caller's environment.
        project_licenses: The project's own license files, copied to
            the staging root.
        staging_dir: Parent directory of the staging root; empty means
            the system temp directory.
        keep_staging: Leave the staging tree behind after a successful run.
        sources: Ordered vendor source table.
    """

    bundle_name: str = 'twoliter-attributions'
    output: str = 'twoliter-attributions.tar.gz'
    clarify: str = 'clarify.toml'
    scanner: str = DEFAULT_SCANNER
    spdx_data: str = DEFAULT_SPDX_DATA
    ecosystem: str = 'cargo'
    locked: bool = True
    toolchain_home: str = ''
    project_licenses: tuple[str, ...] = _DEFAULT_PROJECT_LICENSES
    staging_dir: str = ''
    keep_staging: bool = False
    sources: tuple[VendorSourceSpec, ...] = DEFAULT_SOURCES


@dataclass(frozen=True)
class ChecksConfig:
    """The ``[checks]`` section: one command per command-backed step."""

    commands: Mapping[str, tuple[str, ...]] = field(default_factory=lambda: dict(DEFAULT_CHECK_COMMANDS))

    def command_for(self, step: str) -> tuple[str, ...]:
        """Return the command configured for *step*."""
        return self.commands[step]


@dataclass(frozen=True)
class ProjectConfig:
    """Fully resolved configuration for one project."""

    root: Path
    attribution: AttributionConfig = field(default_factory=AttributionConfig)
    checks: ChecksConfig = field(default_factory=ChecksConfig)

    def resolve(self, path: str) -> Path:
        """Resolve *path* against the project root unless absolute."""
        p = Path(path)
        return p if p.is_absolute() else self.root / p

    @property
    def output_path(self) -> Path:
        """Where the attribution archive is published."""
        return self.resolve(self.attribution.output)

    @property
    def clarify_path(self) -> Path:
        """The shared clarification file."""
        return self.resolve(self.attribution.clarify)

    @property
    def staging_root(self) -> Path:
        """Absolute root of the staging tree for this project.

        A relative ``staging_dir`` is taken relative to the project root.
        """
        parent = self.resolve(self.attribution.staging_dir or tempfile.gettempdir())
        return (parent / self.attribution.bundle_name).resolve()

    @property
    def toolchain_home(self) -> Path | None:
        """Toolchain home directory, or ``None`` to inherit ``HOME``."""
        return Path(self.attribution.toolchain_home) if self.attribution.toolchain_home else None


# ── Validation helpers ───────────────────────────────────────────────


def _check_keys(section: str, raw: Mapping[str, Any], allowed: frozenset[str]) -> None:
    unknown = sorted(set(raw) - allowed)
    if unknown:
        raise ConfigError(
            f'Unknown key(s) in [{section}]: {", ".join(unknown)}',
            hint=f'Allowed keys: {", ".join(sorted(allowed))}.',
        )


def _str(section: str, key: str, value: object) -> str:
    if not isinstance(value, str):
        raise ConfigError(f'{section}.{key} must be a string, got {type(value).__name__}')
    return value


def _bool(section: str, key: str, value: object) -> bool:
    if not isinstance(value, bool):
        raise ConfigError(f'{section}.{key} must be a boolean, got {type(value).__name__}')
    return value


def _str_list(section: str, key: str, value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ConfigError(f'{section}.{key} must be a list of strings, got {type(value).__name__}')
    for i, item in enumerate(value):
        if not isinstance(item, str):
            raise ConfigError(f'{section}.{key}[{i}] must be a string, got {type(item).__name__}')
    return tuple(value)


# ── Section parsers ──────────────────────────────────────────────────

_SOURCE_KEYS: Final[frozenset[str]] = frozenset({'name', 'origin', 'revision', 'manifest', 'scan', 'extra_files'})


def _parse_source(raw: object, index: int) -> VendorSourceSpec:
    section = f'attribution.source[{index}]'
    if not isinstance(raw, dict):
        raise ConfigError(f'{section} must be a table')
    _check_keys(section, raw, _SOURCE_KEYS)
    if 'name' not in raw or 'origin' not in raw:
        raise ConfigError(f'{section} requires both "name" and "origin"')

    scan = _bool(section, 'scan', raw.get('scan', True))
    manifest: str | None = _str(section, 'manifest', raw.get('manifest', 'Cargo.toml'))
    if not scan:
        if 'manifest' in raw:
            raise ConfigError(f'{section} sets "manifest" but scan = false')
        manifest = None

    return VendorSourceSpec(
        name=_str(section, 'name', raw['name']),
        origin=_str(section, 'origin', raw['origin']),
        pinned_revision=_str(section, 'revision', raw.get('revision', '')),
        manifest_path=manifest,
        extra_license_files=_str_list(section, 'extra_files', raw.get('extra_files', [])),
    )


_ATTRIBUTION_STR_KEYS: Final[tuple[str, ...]] = (
    'bundle_name',
    'output',
    'clarify',
    'scanner',
    'spdx_data',
    'ecosystem',
    'toolchain_home',
    'staging_dir',
)
_ATTRIBUTION_KEYS: Final[frozenset[str]] = frozenset({
    *_ATTRIBUTION_STR_KEYS,
    'locked',
    'keep_staging',
    'project_licenses',
    'source',
})


def _parse_attribution(raw: Mapping[str, Any]) -> AttributionConfig:
    """Validate the ``[attribution]`` table."""
    section = 'attribution'
    _check_keys(section, raw, _ATTRIBUTION_KEYS)
    kwargs: dict[str, Any] = {}
    for key in _ATTRIBUTION_STR_KEYS:
        if key in raw:
            kwargs[key] = _str(section, key, raw[key])
    for key in ('locked', 'keep_staging'):
        if key in raw:
            kwargs[key] = _bool(section, key, raw[key])
    if 'project_licenses' in raw:
        kwargs['project_licenses'] = _str_list(section, 'project_licenses', raw['project_licenses'])

    bundle = kwargs.get('bundle_name')
    if bundle is not None and (not bundle or '/' in bundle or bundle in ('.', '..')):
        raise ConfigError(f'attribution.bundle_name {bundle!r} must be a plain directory name')

    if 'source' in raw:
        sources = raw['source']
        if not isinstance(sources, list):
            raise ConfigError('attribution.source must be an array of tables ([[attribution.source]])')
        if sources:
            kwargs['sources'] = tuple(_parse_source(s, i) for i, s in enumerate(sources))
    return AttributionConfig(**kwargs)


_CHECK_KEYS: Final[frozenset[str]] = frozenset(DEFAULT_CHECK_COMMANDS)


def _parse_checks(raw: Mapping[str, Any]) -> ChecksConfig:
    """Validate the ``[checks]`` table."""
    if 'attribution' in raw:
        raise ConfigError(
            'checks.attribution cannot be overridden',
            hint='The attribution step runs the built-in pipeline; configure it under [attribution].',
        )
    _check_keys('checks', raw, _CHECK_KEYS)
    commands = dict(DEFAULT_CHECK_COMMANDS)
    for key, value in raw.items():
        argv = _str_list('checks', key, value)
        if not argv:
            raise ConfigError(f'checks.{key} must not be empty')
        commands[key] = argv
    return ChecksConfig(commands=commands)


def _apply_env(attribution: AttributionConfig, env: Mapping[str, str]) -> AttributionConfig:
    overrides = {attr: env[var] for var, attr in _ENV_OVERRIDES.items() if env.get(var)}
    if not overrides:
        return attribution
    logger.debug('config_env_overrides', keys=sorted(overrides))
    return replace(attribution, **overrides)


def load_config(
    project_root: Path,
    config_path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> ProjectConfig:
    """Load and validate the project configuration.

    Args:
        project_root: Project root; relative paths resolve against it.
        config_path: Explicit config file. When ``None``,
            ``<project_root>/attribution.toml`` is used if present.
        env: Environment for ``ATTRIBKIT_*`` overrides. Defaults to
            ``os.environ``.

    Raises:
        ConfigError: The file is unreadable, not valid TOML, or fails
            validation. An explicit *config_path* that does not exist
            is also an error.
    """
    root = project_root.resolve()
    path = config_path if config_path is not None else root / CONFIG_FILENAME
    data: dict[str, Any] = {}
    if path.is_file():
        try:
            data = tomllib.loads(path.read_text(encoding='utf-8'))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f'cannot read {path}: {exc}') from exc
        logger.debug('config_loaded', path=str(path))
    elif config_path is not None:
        raise ConfigError(f'config file not found: {config_path}')

    _check_keys('<root>', data, frozenset({'attribution', 'checks'}))
    for section in ('attribution', 'checks'):
        if not isinstance(data.get(section, {}), dict):
            raise ConfigError(f'[{section}] must be a table')

    attribution = _parse_attribution(data.get('attribution', {}))
    attribution = _apply_env(attribution, os.environ if env is None else env)
    return ProjectConfig(
        root=root,
        attribution=attribution,
        checks=_parse_checks(data.get('checks', {})),
    )
