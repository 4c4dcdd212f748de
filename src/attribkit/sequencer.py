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

"""Fail-fast release gate.

Runs the quality gates in a fixed order and stops at the first failure::

    format → lint → dependency-policy → attribution → unit-test → integration-test

Cheap checks run first so feedback is fast, and the dependency policy
runs before attribution so attributions are never generated for a
dependency set that already violates license policy.

State machine::

    PENDING ──→ RUNNING(step) ──pass──→ RUNNING(next) ──…──→ ALL_PASSED
                     │
                     └──fail──→ ABORTED(step, cause)

Key Concepts (ELI5)::

    ┌─────────────────────┬────────────────────────────────────────────────┐
    │ Concept             │ ELI5 Explanation                               │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ CheckStep           │ One gate. Its action returns to pass and       │
    │                     │ raises to fail. Nothing in between.            │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ Fail-fast           │ The first red light stops the line; later      │
    │                     │ gates are reported as skipped.                 │
    ├─────────────────────┼────────────────────────────────────────────────┤
    │ exit_code           │ 0 only when every gate passed.                 │
    └─────────────────────┴────────────────────────────────────────────────┘
"""

from __future__ import annotations

import enum
import json
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from attribkit._process import CommandRunner, run_command
from attribkit.config import STEP_NAMES, ProjectConfig
from attribkit.errors import AttribKitError, ConfigError, PipelineCancelled, PolicyViolation, StepFailedError
from attribkit.logging import get_logger
from attribkit.pipeline import AttributionPipeline, CancelToken

logger = get_logger(__name__)

__all__ = [
    'CheckSequencer',
    'CheckStep',
    'SequencerResult',
    'SequencerState',
    'StepOutcome',
    'StepStatus',
    'command_step',
    'default_check_steps',
    'format_check_report',
    'print_check_report',
    'release_build_step',
    'result_to_json',
    'select_steps',
]


class SequencerState(str, enum.Enum):
    """Where the gate currently is."""

    PENDING = 'pending'
    RUNNING = 'running'
    ALL_PASSED = 'all_passed'
    ABORTED = 'aborted'


class StepStatus(str, enum.Enum):
    """Outcome of one step."""

    PASSED = 'passed'
    FAILED = 'failed'
    SKIPPED = 'skipped'


@dataclass(frozen=True)
class CheckStep:
    """A named pass/fail gate.

    Attributes:
        name: Step name, e.g. ``"lint"``.
        action: Called with no arguments. Returning means pass; any
            exception means fail.
        description: Human-readable summary for reports.
    """

    name: str
    action: Callable[[], object]
    description: str = ''


@dataclass(frozen=True)
class StepOutcome:
    """What happened to one step."""

    name: str
    status: StepStatus
    duration: float = 0.0
    error: Exception | None = None


@dataclass
class SequencerResult:
    """Terminal result of a gate run.

    Attributes:
        state: ``ALL_PASSED`` or ``ABORTED``.
        outcomes: One entry per step, in order, including skipped ones.
        failed_step: Name of the failing step when aborted.
        cause: The exception raised by the failing step.
    """

    state: SequencerState
    outcomes: list[StepOutcome] = field(default_factory=list)
    failed_step: str | None = None
    cause: Exception | None = None

    @property
    def ok(self) -> bool:
        """``True`` if every step passed."""
        return self.state == SequencerState.ALL_PASSED

    @property
    def exit_code(self) -> int:
        """Process exit code: 0 iff every step passed."""
        return 0 if self.ok else 1

    def ran(self) -> list[str]:
        """Names of the steps that actually executed."""
        return [o.name for o in self.outcomes if o.status != StepStatus.SKIPPED]


class CheckSequencer:
    """Runs :class:`CheckStep` values in order, stopping at the first failure.

    A sequencer runs once; build a new one for another run. When a
    *cancel* token is given it is checked before every step; a cancelled
    gate ends ABORTED with :class:`PipelineCancelled` as the cause.
    """

    def __init__(self, steps: Sequence[CheckStep], *, cancel: CancelToken | None = None) -> None:
        names = [s.name for s in steps]
        if len(set(names)) != len(names):
            raise ConfigError(f'duplicate step names: {names}')
        self.steps = list(steps)
        self.cancel = cancel or CancelToken()
        self.state = SequencerState.PENDING
        self.current_step: str | None = None

    def run(self) -> SequencerResult:
        """Run every step until one fails.

        Returns:
            The terminal :class:`SequencerResult`.
        """
        if self.state != SequencerState.PENDING:
            raise RuntimeError(f'sequencer already ran (state={self.state.value})')

        outcomes: list[StepOutcome] = []
        for index, step in enumerate(self.steps):
            try:
                self.cancel.check(f'step {step.name!r}')
            except PipelineCancelled as exc:
                outcomes.extend(StepOutcome(s.name, StepStatus.SKIPPED) for s in self.steps[index:])
                self.state = SequencerState.ABORTED
                logger.warning('checks_cancelled', step=step.name)
                return SequencerResult(self.state, outcomes, failed_step=step.name, cause=exc)
            self.state = SequencerState.RUNNING
            self.current_step = step.name
            logger.info('step_started', step=step.name, position=f'{index + 1}/{len(self.steps)}')
            start = time.monotonic()
            try:
                step.action()
            except Exception as exc:  # noqa: BLE001 - any exception fails the step
                duration = time.monotonic() - start
                outcomes.append(StepOutcome(step.name, StepStatus.FAILED, duration, exc))
                outcomes.extend(StepOutcome(s.name, StepStatus.SKIPPED) for s in self.steps[index + 1 :])
                self.state = SequencerState.ABORTED
                logger.error('step_failed', step=step.name, error=str(exc), duration=round(duration, 3))
                return SequencerResult(self.state, outcomes, failed_step=step.name, cause=exc)
            duration = time.monotonic() - start
            outcomes.append(StepOutcome(step.name, StepStatus.PASSED, duration))
            logger.info('step_passed', step=step.name, duration=round(duration, 3))

        self.state = SequencerState.ALL_PASSED
        self.current_step = None
        logger.info('checks_passed', steps=len(self.steps))
        return SequencerResult(self.state, outcomes)


# ── Step factories ───────────────────────────────────────────────────


def command_step(
    name: str,
    argv: Sequence[str],
    *,
    cwd: Path | None = None,
    env: Mapping[str, str] | None = None,
    runner: CommandRunner | None = None,
    failure: Callable[[str, int], Exception] = StepFailedError,
) -> CheckStep:
    """Build a step that runs an external command.

    Output streams straight to the terminal. A non-zero exit raises
    ``failure(name, returncode)``; a missing binary raises
    :class:`StepFailedError` with status 127.
    """

    def _action() -> None:
        try:
            proc = (runner or run_command)(list(argv), cwd=cwd, env=env, capture=False)
        except OSError as exc:
            raise StepFailedError(name, 127, hint=f'cannot run {argv[0]}: {exc}') from exc
        if proc.returncode != 0:
            raise failure(name, proc.returncode)

    return CheckStep(name=name, action=_action, description=' '.join(argv))


def _policy_violation(step: str, returncode: int) -> Exception:
    return PolicyViolation(
        f'{step} rejected the dependency set (exit {returncode})',
        hint='Fix the reported license, ban or source violations before generating attributions.',
    )


def default_check_steps(
    config: ProjectConfig,
    *,
    runner: CommandRunner | None = None,
    pipeline_factory: Callable[[ProjectConfig], AttributionPipeline] = AttributionPipeline.from_config,
    cancel: CancelToken | None = None,
) -> list[CheckStep]:
    """Build the six release gate steps for *config*, in order."""

    def _attribution() -> None:
        pipeline = pipeline_factory(config)
        pipeline.run(config.attribution.sources, cancel=cancel)

    steps: list[CheckStep] = []
    for name in STEP_NAMES:
        if name == 'attribution':
            steps.append(
                CheckStep(
                    name=name,
                    action=_attribution,
                    description=f'attribution archive → {config.output_path}',
                ),
            )
            continue
        steps.append(
            command_step(
                name,
                config.checks.command_for(name),
                cwd=config.root,
                runner=runner,
                failure=_policy_violation if name == 'dependency-policy' else StepFailedError,
            ),
        )
    return steps


def release_build_step(config: ProjectConfig, *, runner: CommandRunner | None = None) -> CheckStep:
    """The release build that may only run after the gate passed."""
    return command_step('build', config.checks.command_for('build'), cwd=config.root, runner=runner)


def select_steps(
    steps: Sequence[CheckStep],
    *,
    only: Sequence[str] = (),
    skip: Sequence[str] = (),
) -> list[CheckStep]:
    """Filter *steps* by name, keeping their order.

    Raises:
        ConfigError: A name in *only* or *skip* is not a known step.
    """
    known = {s.name for s in steps}
    unknown = sorted((set(only) | set(skip)) - known)
    if unknown:
        raise ConfigError(
            f'unknown step(s): {", ".join(unknown)}',
            hint=f'Known steps: {", ".join(s.name for s in steps)}.',
        )
    return [s for s in steps if (not only or s.name in only) and s.name not in skip]


# ── Reporting ────────────────────────────────────────────────────────

_STATUS_STYLE: dict[StepStatus, tuple[str, str]] = {
    StepStatus.PASSED: ('✅', 'green'),
    StepStatus.FAILED: ('❌', 'red'),
    StepStatus.SKIPPED: ('⏭️', 'dim'),
}


def print_check_report(result: SequencerResult, console: Console | None = None) -> None:
    """Print a step table followed by a diagnostic for the failing step.

    Args:
        result: Result of :meth:`CheckSequencer.run`.
        console: Rich console. Defaults to a new ``Console()``.
    """
    if console is None:
        console = Console()

    table = Table(show_header=True, header_style='bold', show_edge=False, pad_edge=False)
    table.add_column('Step', min_width=18, style='bold')
    table.add_column('Status', min_width=10)
    table.add_column('Time', justify='right')
    for outcome in result.outcomes:
        icon, style = _STATUS_STYLE[outcome.status]
        elapsed = f'{outcome.duration:.1f}s' if outcome.status != StepStatus.SKIPPED else ''
        table.add_row(outcome.name, Text(f'{icon} {outcome.status.value}', style=style), elapsed)
    console.print(table)

    if result.ok:
        console.print(f'\n[bold green]{len(result.outcomes)}/{len(result.outcomes)} checks passed.[/]')
        return

    cause = result.cause
    message = cause.message if isinstance(cause, AttribKitError) else str(cause)
    console.print(f'\n[bold red]error\\[{result.failed_step}][/][bold]: {escape(message)}[/]', highlight=False)
    if isinstance(cause, AttribKitError) and cause.hint:
        console.print(f'   [cyan]=[/] [green]help[/]: {escape(cause.hint)}', highlight=False)


def format_check_report(result: SequencerResult, *, color: bool = False) -> str:
    """Render :func:`print_check_report` output to a string."""
    buf = StringIO()
    console = Console(file=buf, force_terminal=color, width=100)
    print_check_report(result, console=console)
    return buf.getvalue().rstrip('\n')


def result_to_json(result: SequencerResult, *, indent: int = 2) -> str:
    """Serialize a gate result to JSON."""
    return json.dumps(
        {
            'state': result.state.value,
            'failed_step': result.failed_step,
            'cause': str(result.cause) if result.cause is not None else None,
            'steps': [
                {'name': o.name, 'status': o.status.value, 'duration': round(o.duration, 3)} for o in result.outcomes
            ],
        },
        indent=indent,
    )
