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

"""Subprocess helpers shared by the fetcher, scanner and gate steps."""

from __future__ import annotations

import os
import subprocess  # noqa: S404 - git, the scanner and cargo are external tools
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path

from attribkit.logging import get_logger

logger = get_logger(__name__)

__all__ = [
    'CommandRunner',
    'run_command',
    'toolchain_env',
]

#: Signature of :func:`run_command`; injectable for tests.
CommandRunner = Callable[..., 'subprocess.CompletedProcess[str]']


def run_command(
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    capture: bool = True,
) -> subprocess.CompletedProcess[str]:
    """Run *argv* to completion and return the finished process.

    The exit status is returned, not raised; callers map it onto their
    own error type. ``FileNotFoundError`` and ``PermissionError`` from
    a missing or non-executable binary propagate.

    Args:
        argv: Program and arguments.
        cwd: Working directory.
        env: Full environment for the child. ``None`` inherits ours.
        capture: Capture stdout/stderr as text. Gate steps pass
            ``False`` so cargo output streams straight to the terminal.
    """
    logger.debug('run_command', argv=list(argv), cwd=str(cwd) if cwd else None)
    return subprocess.run(  # noqa: S603
        list(argv),
        cwd=cwd,
        env=dict(env) if env is not None else None,
        capture_output=capture,
        text=True,
        check=False,
    )


def toolchain_env(
    toolchain_home: Path | None,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Build a child environment rooted at *toolchain_home*.

    Sets ``HOME`` and puts ``$HOME/.cargo/bin`` first on ``PATH``, which
    is everything ``source ~/.cargo/env`` does for a rustup install.

    Args:
        toolchain_home: Home directory holding the rust toolchain, or
            ``None`` to leave the environment untouched.
        base: Environment to start from. Defaults to ``os.environ``.
    """
    env = dict(os.environ if base is None else base)
    if toolchain_home is None:
        return env
    env['HOME'] = str(toolchain_home)
    cargo_bin = str(toolchain_home / '.cargo' / 'bin')
    path = env.get('PATH', '')
    env['PATH'] = f'{cargo_bin}{os.pathsep}{path}' if path else cargo_bin
    return env

