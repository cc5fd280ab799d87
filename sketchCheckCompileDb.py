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
"""Merge a finished build's compilation data into the project's compilation database.

After every build the toolchain leaves compile_commands.json (or, when that is
missing or broken, its includes.cache) in the build directory. This script
reconciles it into <project>/.vscode/compile_commands.json so the IDE keeps
exact per-file flags across builds, and optionally refreshes the include path
list in c_cpp_properties.json.

Requirements:
    - Python 3.8+
    - colorama (optional, for colored output): pip install colorama

Usage:
    sketchCheckCompileDb.py <build_directory> --project-root DIR [--sketch-dir DIR]
                            [--database FILE] [--cpp-properties] [--format=text|json]

Exit Codes:
    0: Success (including "no compilation data available")
    1: Invalid arguments or directory
    2: Database could not be written
    130: Interrupted
"""

import os
import sys
import json
import signal
import logging
import argparse
from typing import Any

__version__ = "1.0.0"
__author__ = "Mana Battery"

from sketchlib.color_utils import Colors, print_error, print_info, print_success, print_warning, should_use_color
from sketchlib.compdb_utils import MergeResult, merge_compile_database
from sketchlib.constants import EXIT_INVALID_ARGS, EXIT_KEYBOARD_INTERRUPT, EXIT_RUNTIME_ERROR, EXIT_SUCCESS, BuildDirectoryError, DatabaseWriteError
from sketchlib.cpp_properties import collect_include_paths, find_compiler_path, update_cpp_properties
from sketchlib.file_utils import ProjectBoundary, ProjectFileIndex
from sketchlib.package_verification import require_package
from sketchlib.settings import SyncSettings

# Export for tests
__all__ = ["EXIT_SUCCESS", "main", "format_json_output", "validate_build_directory"]

logger = logging.getLogger(__name__)


def signal_handler(signum: int, frame: Any) -> None:
    """Handle interrupt signals gracefully."""
    print_warning("\nInterrupted by user. Exiting...", prefix=False)
    sys.exit(EXIT_KEYBOARD_INTERRUPT)


def validate_build_directory(path: str) -> str:
    """Validate the build directory and return its absolute path.

    Raises:
        BuildDirectoryError: If the directory does not exist
    """
    build_dir = os.path.abspath(path)
    if not os.path.isdir(build_dir):
        raise BuildDirectoryError(f"Build directory does not exist: {build_dir}")
    return build_dir


def format_json_output(result: MergeResult, cpp_properties_updated: bool = False) -> str:
    """Format a merge result as JSON.

    Args:
        result: Merge result
        cpp_properties_updated: Whether c_cpp_properties.json was rewritten

    Returns:
        JSON formatted string
    """
    output = {
        "summary": {
            "count": result.count,
            "source": result.source,
            "database": result.database_path,
            "entries": len(result.entries),
            "kept_existing": result.kept_existing,
            "dropped_existing": result.dropped_existing,
            "discarded": result.discarded,
            "written": result.written,
            "cpp_properties_updated": cpp_properties_updated,
            "version": __version__,
        },
        "warnings": list(result.warnings),
    }
    return json.dumps(output, indent=2)


def print_text_summary(result: MergeResult, cpp_properties_updated: bool = False) -> None:
    """Print a human readable merge summary."""
    if not result.has_artifact:
        print_warning("No compilation data available for this build.", file=sys.stdout, prefix=False)
        for warning in result.warnings:
            print(f"  {Colors.DIM}{warning}{Colors.RESET}")
        return

    print_success(f"Merged {result.count} entries from the {result.source} build artifact into {result.database_path}", prefix=False)
    print(f"  Database entries: {Colors.BRIGHT}{len(result.entries)}{Colors.RESET}")
    print(f"  Kept from earlier builds: {result.kept_existing}")
    if result.dropped_existing:
        print(f"  Dropped (no longer project files): {result.dropped_existing}")
    if result.discarded:
        print(f"  Ignored (outside the project): {result.discarded}")
    for warning in result.warnings:
        print_warning(warning)
    if cpp_properties_updated:
        print_info("Updated c_cpp_properties.json include paths")


def main() -> int:
    """Main entry point for the script.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    parser = argparse.ArgumentParser(
        description="Merge a finished build's compilation data into the project's compilation database.",
        epilog=f"Version {__version__}\n\nExamples:\n"
        f"  %(prog)s /tmp/arduino/sketches/ABC123 --project-root ~/Arduino/Blink\n"
        f"  %(prog)s build/ --project-root . --cpp-properties --format json\n",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("build_directory", help="Build directory containing compile_commands.json or includes.cache")
    parser.add_argument("--project-root", required=True, metavar="DIR", help="Root directory of the sketch project")
    parser.add_argument("--sketch-dir", metavar="DIR", default="", help="Sketch directory used to resolve cached entries (default: project root)")
    parser.add_argument("--database", metavar="FILE", default="", help="Consolidated database path (default: <project>/.vscode/compile_commands.json)")
    parser.add_argument("--cpp-properties", action="store_true", help="Also refresh include paths in .vscode/c_cpp_properties.json")
    parser.add_argument("--format", choices=["text", "json"], default="text", help="Output format (default: text)")
    parser.add_argument("--no-color", action="store_true", help="Disable colored output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output to stderr")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    args = parser.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="%(levelname)s: %(message)s")

    if should_use_color(no_color=args.no_color):
        require_package("colorama", "colored output")
    else:
        Colors.disable()

    try:
        build_dir = validate_build_directory(args.build_directory)
    except BuildDirectoryError as e:
        print_error(str(e))
        return e.exit_code

    project_root = os.path.abspath(args.project_root)
    if not os.path.isdir(project_root):
        print_error(f"Project root does not exist: {project_root}")
        return EXIT_INVALID_ARGS

    settings = SyncSettings.for_project(project_root, database_path=args.database, update_cpp_properties=args.cpp_properties)
    boundary = ProjectBoundary(roots=[project_root])
    file_index = ProjectFileIndex.build(boundary, exclude_dirs=[build_dir])
    sketch_dir = os.path.abspath(args.sketch_dir) if args.sketch_dir else project_root

    try:
        result = merge_compile_database(build_dir, boundary, settings.database_path, sketch_dir=sketch_dir, file_index=file_index, implicit_header=settings.implicit_header)
    except DatabaseWriteError as e:
        print_error(str(e))
        return e.exit_code

    cpp_properties_updated = False
    if settings.update_cpp_properties and result.has_artifact:
        try:
            cpp_properties_updated = update_cpp_properties(
                settings.cpp_properties_path,
                collect_include_paths(result.entries),
                compiler_path=find_compiler_path(result.entries),
                compile_commands=settings.database_path,
            )
        except OSError as e:
            print_error(f"Cannot write {settings.cpp_properties_path}: {e}")
            return EXIT_RUNTIME_ERROR

    if args.format == "json":
        print(format_json_output(result, cpp_properties_updated))
    else:
        print_text_summary(result, cpp_properties_updated)

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
