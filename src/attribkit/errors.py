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

"""Error taxonomy for attribkit.

Every error below is fatal to the run that raised it. Nothing is
retried and nothing is downgraded to a warning; the only failures that
are logged and ignored are scratch-directory cleanups, which never
surface as exceptions.

Hierarchy::

    AttribKitError
    ├── ConfigError
    ├── SourceSpecError
    ├── FetchError
    ├── ScanError
    ├── AttributionIOError
    ├── PolicyViolation
    ├── StepFailedError
    └── PipelineCancelled
"""

from __future__ import annotations

from attribkit.logging import redact_url

__all__ = [
    'AttribKitError',
    'AttributionIOError',
    'ConfigError',
    'FetchError',
    'PipelineCancelled',
    'PolicyViolation',
    'ScanError',
    'SourceSpecError',
    'StepFailedError',
]


class AttribKitError(Exception):
    """Base class for all attribkit errors.

    Attributes:
        message: Human-readable description of what failed.
        hint: Optional actionable suggestion for the operator.
    """

    def __init__(self, message: str, *, hint: str = '') -> None:
        self.message = message
        self.hint = hint
        super().__init__(f'{message} (hint: {hint})' if hint else message)


class ConfigError(AttribKitError):
    """Invalid or unknown configuration."""


class SourceSpecError(AttribKitError):
    """A vendor source description failed validation."""


class FetchError(AttribKitError):
    """A source could not be materialized at its pinned revision.

    Network failures and unknown revisions are both reported here with
    the origin and revision attached. Credentials in the origin URL
    (and in git's echo of it) are masked.
    """

    def __init__(
        self,
        message: str,
        *,
        origin: str,
        revision: str = '',
        stderr: str = '',
        hint: str = '',
    ) -> None:
        self.origin = redact_url(origin)
        self.revision = revision
        self.stderr = redact_url(stderr)
        detail = f'{message}: {self.origin}'
        if revision:
            detail += f'@{revision}'
        if stderr:
            detail += f'\n{self.stderr.rstrip()}'
        super().__init__(detail, hint=hint)


class ScanError(AttribKitError):
    """The external license scanner failed or could not be invoked."""

    def __init__(
        self,
        message: str,
        *,
        manifest: str,
        returncode: int | None = None,
        stderr: str = '',
        hint: str = '',
    ) -> None:
        self.manifest = manifest
        self.returncode = returncode
        self.stderr = stderr
        detail = f'{message} ({manifest}'
        if returncode is not None:
            detail += f', exit {returncode}'
        detail += ')'
        if stderr:
            detail += f'\n{stderr.rstrip()}'
        super().__init__(detail, hint=hint)


class AttributionIOError(AttribKitError):
    """Filesystem failure while staging or archiving attributions."""


class PolicyViolation(AttribKitError):
    """The dependency-policy gate rejected the dependency set."""


class StepFailedError(AttribKitError):
    """A command-backed quality gate step exited non-zero."""

    def __init__(self, step: str, returncode: int, *, hint: str = '') -> None:
        self.step = step
        self.returncode = returncode
        super().__init__(f'{step} exited with status {returncode}', hint=hint)


class PipelineCancelled(AttribKitError):
    """A pipeline or gate run was cancelled at a step boundary."""

    def __init__(self, boundary: str) -> None:
        self.boundary = boundary
        super().__init__(f'run cancelled before {boundary}')
