#!/usr/bin/env python3
#****************************************************************************************************************************************************
#* BSD 3-Clause License
#*
#* Copyright (c) 2025, Mana Battery
#* All rights reserved.
#*
#* Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
#*
#* 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
#* 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
#*    documentation and/or other materials provided with the distribution.
#* 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
#*    software without specific prior written permission.
#*
#* THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
#* THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
#* CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
#* PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
#* LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
#* EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
#****************************************************************************************************************************************************
"""Extract compiler diagnostics from a captured build error stream.

The toolchain prints warnings and errors interleaved with include chains,
progress output and ANSI colors. This script turns that text into a per-file
problem list, hiding diagnostics for files outside the project unless asked.

Requirements:
    - Python 3.8+
    - colorama (optional, for colored output): pip install colorama

Usage:
    sketchCheckDiagnostics.py <stderr-file|-> --cwd DIR --project-root DIR [--project-root DIR ...]
                              [--allow-outside] [--show-outside-warnings]
                              [--format=text|json] [--output FILE] [--fail-on-error]

Exit Codes:
    0: Success
    1: Invalid arguments or unreadable input
    2: Unexpected error
    3: Errors found (only with --fail-on-error)
"""

import os
import sys
import json
import signal
import logging
import argparse
from typing import Any, Optional

__version__ = "1.0.0"
__author__ = "Mana Battery"

from sketchlib.color_utils import Colors, colored, format_diagnostic, print_error, print_success, print_warning, should_use_color
from sketchlib.constants import EXIT_DIAGNOSTICS_FOUND, EXIT_INVALID_ARGS, EXIT_KEYBOARD_INTERRUPT, EXIT_RUNTIME_ERROR, EXIT_SUCCESS
from sketchlib.diagnostic_utils import DiagnosticScanResult, extract_diagnostics, to_problem_list
from sketchlib.file_utils import ProjectBoundary
from sketchlib.package_verification import require_package
from sketchlib.settings import DiagnosticPolicy
from sketchlib.storage_utils import read_text_file

# Export for tests
__all__ = ["EXIT_SUCCESS", "main", "format_json_output", "format_text_output"]

logger = logging.getLogger(__name__)


def signal_handler(signum: int, frame: Any) -> None:
    """Handle interrupt signals gracefully."""
    print_warning("\nInterrupted by user. Exiting...", prefix=False)
    sys.exit(EXIT_KEYBOARD_INTERRUPT)


def format_json_output(result: DiagnosticScanResult) -> str:
    """Format a scan result as JSON.

    Args:
        result: Diagnostics grouped by file

    Returns:
        JSON formatted string
    """
    output = {
        "summary": {
            "files": result.file_count,
            "errors": result.error_count,
            "warnings": result.warning_count,
            "dropped": result.dropped_count,
            "version": __version__,
        },
        "diagnostics": to_problem_list(result),
    }
    return json.dumps(output, indent=2)


def format_text_output(result: DiagnosticScanResult) -> str:
    """Format a scan result as compiler-style lines followed by a summary."""
    lines = []
    for path, records in result.by_file.items():
        for record in records:
            lines.append(format_diagnostic(path, record.line, record.column, record.severity.value, record.message))

    summary = f"{result.error_count} error(s), {result.warning_count} warning(s) in {result.file_count} file(s)"
    if result.dropped_count:
        summary += colored(f" ({result.dropped_count} outside the project hidden)", Colors.DIM)
    lines.append(summary)
    return "\n".join(lines)


def _read_input(source: str) -> Optional[str]:
    if source == "-":
        return sys.stdin.read()
    return read_text_file(source)


def main() -> int:
    """Main entry point for the script.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    parser = argparse.ArgumentParser(
        description="Extract compiler diagnostics from a captured build error stream.",
        epilog=f"Version {__version__}\n\nExamples:\n"
        f"  %(prog)s build.log --cwd ~/Arduino/Blink --project-root ~/Arduino/Blink\n"
        f"  arduino-cli compile 2>&1 | %(prog)s - --project-root . --format json\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("input", help="File containing the compiler error stream, or '-' for stdin")
    parser.add_argument("--cwd", default=os.getcwd(), help="Working directory of the build (default: current directory)")
    parser.add_argument("--project-root", action="append", default=[], metavar="DIR", help="Project root directory (repeatable, default: --cwd)")
    parser.add_argument("--allow-outside", action="store_true", help="Also report diagnostics for files outside the project")
    parser.add_argument("--show-outside-warnings", action="store_true", help="With --allow-outside, keep warnings for files outside the project")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format (default: text)")
    parser.add_argument("--output", "-o", metavar="FILE", help="Save JSON output to file and print summary to stdout")
    parser.add_argument("--fail-on-error", action="store_true", help=f"Exit with {EXIT_DIAGNOSTICS_FOUND} when any error was found")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s: %(message)s")

    if should_use_color(no_color=args.no_color):
        require_package("colorama", "colored output")
    else:
        Colors.disable()

    working_dir = os.path.abspath(args.cwd)
    if not os.path.isdir(working_dir):
        print_error(f"Working directory does not exist: {working_dir}")
        return EXIT_INVALID_ARGS

    text = _read_input(args.input)
    if text is None:
        print_error(f"Cannot read compiler output: {args.input}")
        return EXIT_INVALID_ARGS

    boundary = ProjectBoundary(roots=args.project_root or [working_dir])
    policy = DiagnosticPolicy.from_flags(allow_outside=args.allow_outside, show_outside_warnings=args.show_outside_warnings)
    logger.debug("Project roots: %s", ", ".join(boundary.roots))

    result = extract_diagnostics(text, working_dir, boundary, policy)

    if args.output:
        try:
            with open(args.output, "w", encoding="utf-8") as f:
                f.write(format_json_output(result))
            logger.debug("JSON output saved to: %s", args.output)
        except OSError as e:
            print_error(f"Cannot write to file '{args.output}': {e}")
            return EXIT_INVALID_ARGS

    try:
        if args.format == "json" and not args.output:
            print(format_json_output(result))
        elif result.diagnostic_count == 0:
            print_success("No diagnostics reported.", prefix=False)
        else:
            print(format_text_output(result))
    except BrokenPipeError:
        # Handle broken pipe gracefully (e.g., when piping to head)
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        return EXIT_SUCCESS

    if args.fail_on_error and result.error_count:
        return EXIT_DIAGNOSTICS_FOUND
    return EXIT_SUCCESS


if __name__ == "__main__":
    from sketchlib.constants import SketchCheckError

    try:
        sys.exit(main())
    except KeyboardInterrupt:
        print_warning("Interrupted.", prefix=False)
        sys.exit(EXIT_KEYBOARD_INTERRUPT)
    except SketchCheckError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(e.exit_code)
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(EXIT_RUNTIME_ERROR)
