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

"""Attribution pipeline: fetch, scan and stage every source, then archive.

Data Flow::

    ┌───────────────┐   fetch    ┌──────────────┐   scan    ┌─────────────────────┐
    │ VendorSource  │──────────→│ source tree  │─────────→│ staging/<name>/vendor│
    │ Spec (×N)     │           │ (pinned)     │  copy    │ staging/<name>/LIC*  │
    └───────────────┘           └──────────────┘─────────→└─────────────────────┘
                                                                     │
                         project licenses ──→ staging/               │
                                                                     ▼
                                                     ┌─────────────────────────┐
                                                     │ <output>.tar.gz (atomic)│
                                                     └─────────────────────────┘

Sources run strictly one after another. The first failure aborts the
run: later sources are never attempted and nothing is published at the
output path, since a partial bundle could be mistaken for a complete
one. Cancellation is honoured only between sources and before
compression.

Usage::

    from attribkit.config import load_config
    from attribkit.pipeline import AttributionPipeline

    config = load_config(Path('.'))
    archive = AttributionPipeline.from_config(config).run(config.attribution.sources)
"""

from __future__ import annotations

import threading
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from attribkit._process import toolchain_env
from attribkit._types import VendorSourceSpec
from attribkit.archive import ArchiveBuilder
from attribkit.config import ProjectConfig
from attribkit.errors import AttribKitError, PipelineCancelled
from attribkit.fetch import FetchedSource, SourceFetcher
from attribkit.logging import get_logger
from attribkit.scan import LicenseScanInvoker
from attribkit.sources import validate_sources
from attribkit.staging import StagingTree

logger = get_logger(__name__)

__all__ = [
    'AttributionPipeline',
    'CancelToken',
    'PipelineSettings',
]


class CancelToken:
    """Thread-safe cancellation flag checked at step boundaries."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation; takes effect at the next boundary."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        """``True`` once :meth:`cancel` has been called."""
        return self._event.is_set()

    def check(self, boundary: str) -> None:
        """Raise :class:`PipelineCancelled` if cancellation was requested."""
        if self._event.is_set():
            raise PipelineCancelled(boundary)


@dataclass(frozen=True)
class PipelineSettings:
    """Explicit inputs for one pipeline instance.

    Attributes:
        project_root: Root of the primary project.
        clarify_file: Clarification file passed to every scan.
        staging_root: Staging tree root; its base name becomes the
            archive's top-level entry.
        output: Published archive path.
        project_licenses: The project's own license files, copied into
            the staging root after all sources succeed.
        keep_staging: Leave the staging tree behind on success.
    """

    project_root: Path
    clarify_file: Path
    staging_root: Path
    output: Path
    project_licenses: tuple[Path, ...] = ()
    keep_staging: bool = False

    @classmethod
    def from_config(cls, config: ProjectConfig) -> PipelineSettings:
        """Derive settings from a loaded :class:`ProjectConfig`."""
        return cls(
            project_root=config.root,
            clarify_file=config.clarify_path,
            staging_root=config.staging_root,
            output=config.output_path,
            project_licenses=tuple(config.resolve(p) for p in config.attribution.project_licenses),
            keep_staging=config.attribution.keep_staging,
        )


class AttributionPipeline:
    """Builds one attribution archive from an ordered source table."""

    def __init__(
        self,
        settings: PipelineSettings,
        *,
        fetcher: SourceFetcher | None = None,
        scanner: LicenseScanInvoker | None = None,
        builder: ArchiveBuilder | None = None,
    ) -> None:
        self.settings = settings
        self.fetcher = fetcher or SourceFetcher(settings.project_root)
        self.scanner = scanner or LicenseScanInvoker()
        self.builder = builder or ArchiveBuilder()
        self.staging = StagingTree(settings.staging_root)

    @classmethod
    def from_config(cls, config: ProjectConfig) -> AttributionPipeline:
        """Wire a pipeline from configuration, including the toolchain env."""
        env = toolchain_env(config.toolchain_home)
        attribution = config.attribution
        return cls(
            PipelineSettings.from_config(config),
            fetcher=SourceFetcher(config.root, env=env),
            scanner=LicenseScanInvoker(
                attribution.scanner,
                spdx_data=config.resolve(attribution.spdx_data),
                ecosystem=attribution.ecosystem,
                locked=attribution.locked,
                env=env,
            ),
        )

    def run(
        self,
        sources: Sequence[VendorSourceSpec],
        *,
        cancel: CancelToken | None = None,
    ) -> Path:
        """Attribute every source in order and publish the archive.

        Args:
            sources: Ordered source table. Order only affects log and
                staging order, never the result.
            cancel: Optional token checked before each source and
                before compression.

        Returns:
            The published archive path.

        Raises:
            SourceSpecError: A spec is invalid (checked before any fetch).
            FetchError, ScanError, AttributionIOError: The first failing
                source or the archive step.
            PipelineCancelled: Cancellation was requested.
        """
        validate_sources(sources)
        token = cancel or CancelToken()
        settings = self.settings

        logger.info(
            'attribution_started',
            sources=[s.name for s in sources],
            staging=str(settings.staging_root),
            output=str(settings.output),
        )
        try:
            self.staging.reset()
            for spec in sources:
                token.check(f'source {spec.name!r}')
                self._attribute(spec)

            self.staging.copy_into(self.staging.root, settings.project_licenses)
            token.check('compression')
            archive = self.builder.build(self.staging.root, settings.output)
        except AttribKitError as exc:
            logger.error(
                'attribution_failed',
                error=str(exc),
                staging=str(settings.staging_root),
            )
            raise

        if not settings.keep_staging:
            self.staging.discard()
        logger.info('attribution_finished', archive=str(archive), sources=len(sources))
        return archive

    def _attribute(self, spec: VendorSourceSpec) -> None:
        log = logger.bind(source=spec.name, origin=spec.describe())
        log.info('source_started')
        fetched = self.fetcher.fetch(spec)
        try:
            self._stage(spec, fetched)
        finally:
            self.fetcher.release(fetched)
        log.info('source_staged')

    def _stage(self, spec: VendorSourceSpec, fetched: FetchedSource) -> None:
        dest = self.staging.source_dir(spec.name)
        if spec.manifest_path is not None:
            self.scanner.scan(
                fetched.root / spec.manifest_path,
                self.settings.clarify_file,
                self.staging.vendor_dir(spec.name),
            )
        extras = [fetched.root / Path(p) for p in spec.extra_license_files]
        self.staging.copy_into(dest, extras)
