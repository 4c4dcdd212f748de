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

"""Command-line entry point.

Exit codes:
    0  Every step passed / the archive was written.
    1  A step, fetch, scan or archive operation failed.
    2  Invalid configuration or usage.

Usage::

    attribkit attribution                 # build twoliter-attributions.tar.gz
    attribkit check                       # full release gate
    attribkit check --only lint           # one gate step
    attribkit build                       # gate, then cargo build --release
    attribkit sources                     # show the resolved source table
"""

from __future__ import annotations

import argparse
import signal
import sys
from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from typing import Any

from rich.console import Console
from rich.table import Table
from rich.text import Text

from attribkit import __version__
from attribkit.config import STEP_NAMES, ProjectConfig, load_config
from attribkit.errors import AttribKitError, ConfigError, SourceSpecError
from attribkit.logging import configure_logging, get_logger, redact_url
from attribkit.pipeline import AttributionPipeline, CancelToken
from attribkit.sequencer import (
    CheckSequencer,
    default_check_steps,
    print_check_report,
    release_build_step,
    result_to_json,
    select_steps,
)

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='attribkit',
        description='Release gate and third-party license attribution for twoliter.',
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging.')
    verbosity.add_argument('-q', '--quiet', action='store_true', help='Only log warnings and errors.')
    parser.add_argument('--json-log', action='store_true', help='Emit logs as JSON lines on stderr.')
    parser.add_argument(
        '--project-root',
        type=Path,
        default=Path.cwd(),
        help='Project root (default: current directory).',
    )
    parser.add_argument('--config', type=Path, default=None, help='Path to attribution.toml.')

    sub = parser.add_subparsers(dest='command', required=True)

    attribution = sub.add_parser('attribution', help='Generate the attribution archive.')
    attribution.add_argument('--output', default=None, help='Archive path (overrides config).')
    attribution.add_argument('--keep-staging', action='store_true', help='Keep the staging tree after success.')

    check = sub.add_parser('check', help='Run the release gate.')
    check.add_argument('--only', action='append', default=[], choices=STEP_NAMES, help='Run only this step.')
    check.add_argument('--skip', action='append', default=[], choices=STEP_NAMES, help='Skip this step.')
    check.add_argument('--json', action='store_true', help='Print the result as JSON.')

    sub.add_parser('build', help='Run the release gate, then the release build.')
    sub.add_parser('sources', help='Show the vendor source table.')
    return parser


def _cancel_on_sigterm(token: CancelToken) -> Any:  # noqa: ANN401
    """Route SIGTERM to *token* and return the handler it replaced."""
    return signal.signal(signal.SIGTERM, lambda _signum, _frame: token.cancel())


def _cmd_attribution(config: ProjectConfig, args: argparse.Namespace, token: CancelToken) -> int:
    attribution = config.attribution
    if args.output is not None:
        attribution = replace(attribution, output=args.output)
    if args.keep_staging:
        attribution = replace(attribution, keep_staging=True)
    config = replace(config, attribution=attribution)

    try:
        archive = AttributionPipeline.from_config(config).run(attribution.sources, cancel=token)
    except SourceSpecError as exc:
        logger.error('invalid_source', error=str(exc))
        return EXIT_USAGE
    except AttribKitError as exc:
        logger.error('attribution_aborted', error=str(exc))
        return EXIT_FAILED
    print(archive)  # noqa: T201 - stdout is the command's result
    return EXIT_OK


def _cmd_check(config: ProjectConfig, args: argparse.Namespace, token: CancelToken) -> int:
    steps = select_steps(default_check_steps(config, cancel=token), only=args.only, skip=args.skip)
    result = CheckSequencer(steps, cancel=token).run()
    if args.json:
        print(result_to_json(result))  # noqa: T201
    else:
        print_check_report(result)
    return result.exit_code


def _cmd_build(config: ProjectConfig, args: argparse.Namespace, token: CancelToken) -> int:
    console = Console()
    gate = CheckSequencer(default_check_steps(config, cancel=token), cancel=token).run()
    print_check_report(gate, console=console)
    if not gate.ok:
        console.print('[bold red]release build blocked by failing gate.[/]')
        return gate.exit_code
    build = CheckSequencer([release_build_step(config)], cancel=token).run()
    print_check_report(build, console=console)
    return build.exit_code


def _cmd_sources(config: ProjectConfig, args: argparse.Namespace, token: CancelToken) -> int:
    table = Table(show_header=True, header_style='bold', show_edge=False, pad_edge=False)
    table.add_column('Name', style='bold')
    table.add_column('Origin')
    table.add_column('Revision')
    table.add_column('Manifest')
    table.add_column('Extra files', style='dim')
    for spec in config.attribution.sources:
        table.add_row(
            spec.name,
            Text(redact_url(spec.origin)),
            spec.pinned_revision or '-',
            spec.manifest_path or '(copy only)',
            ', '.join(spec.extra_license_files),
        )
    Console().print(table)
    return EXIT_OK


_COMMANDS = {
    'attribution': _cmd_attribution,
    'check': _cmd_check,
    'build': _cmd_build,
    'sources': _cmd_sources,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Run the CLI and return its exit code."""
    args = _build_parser().parse_args(argv)
    configure_logging(verbose=args.verbose, quiet=args.quiet, json_log=args.json_log)

    token = CancelToken()
    previous = _cancel_on_sigterm(token)
    try:
        config = load_config(args.project_root, args.config)
        return _COMMANDS[args.command](config, args, token)
    except ConfigError as exc:
        logger.error('config_error', error=str(exc))
        return EXIT_USAGE
    finally:
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)


if __name__ == '__main__':
    sys.exit(main())
