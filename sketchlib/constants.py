#!/usr/bin/env python3
# -*- coding: utf-8 -*-
# ****************************************************************************************************************************************************
# * BSD 3-Clause License
# *
# * Copyright (c) 2025, Mana Battery
# * All rights reserved.
# *
# * Redistribution and use in source and binary forms, with or without modification, are permitted provided that the following conditions are met:
# *
# * 1. Redistributions of source code must retain the above copyright notice, this list of conditions and the following disclaimer.
# * 2. Redistributions in binary form must reproduce the above copyright notice, this list of conditions and the following disclaimer in the
# *    documentation and/or other materials provided with the distribution.
# * 3. Neither the name of the copyright holder nor the names of its contributors may be used to endorse or promote products derived from this
# *    software without specific prior written permission.
# *
# * THIS SOFTWARE IS PROVIDED BY THE COPYRIGHT HOLDERS AND CONTRIBUTORS "AS IS" AND ANY EXPRESS OR IMPLIED WARRANTIES, INCLUDING, BUT NOT LIMITED TO,
# * THE IMPLIED WARRANTIES OF MERCHANTABILITY AND FITNESS FOR A PARTICULAR PURPOSE ARE DISCLAIMED. IN NO EVENT SHALL THE COPYRIGHT HOLDER OR
# * CONTRIBUTORS BE LIABLE FOR ANY DIRECT, INDIRECT, INCIDENTAL, SPECIAL, EXEMPLARY, OR CONSEQUENTIAL DAMAGES (INCLUDING, BUT NOT LIMITED TO,
# * PROCUREMENT OF SUBSTITUTE GOODS OR SERVICES; LOSS OF USE, DATA, OR PROFITS; OR BUSINESS INTERRUPTION) HOWEVER CAUSED AND ON ANY THEORY OF
# * LIABILITY, WHETHER IN CONTRACT, STRICT LIABILITY, OR TORT (INCLUDING NEGLIGENCE OR OTHERWISE) ARISING IN ANY WAY OUT OF THE USE OF THIS SOFTWARE,
# * EVEN IF ADVISED OF THE POSSIBILITY OF SUCH DAMAGE.
# ****************************************************************************************************************************************************
"""Shared constants for sketchCheck tools.

This module provides centralized constants used by the diagnostic extractor and
the compilation database merger so file names, flag sets and exit codes stay
consistent between the library and the command line tools.
"""

# =============================================================================
# Exit Codes
# =============================================================================

EXIT_SUCCESS = 0
EXIT_INVALID_ARGS = 1
EXIT_RUNTIME_ERROR = 2
EXIT_DIAGNOSTICS_FOUND = 3  # Errors found and --fail-on-error was given
EXIT_KEYBOARD_INTERRUPT = 130

# =============================================================================
# Build Artifact Files
# =============================================================================

COMPILE_COMMANDS_JSON = "compile_commands.json"  # Standard compilation database filename
INCLUDES_CACHE_JSON = "includes.cache"  # Toolchain incremental-build cache (fallback source)
BUILD_OPTIONS_JSON = "build.options.json"  # Optional side-file with sketchLocation override
BUILD_OPTIONS_SKETCH_LOCATION = "sketchLocation"

# =============================================================================
# IDE Output Files
# =============================================================================

IDE_SETTINGS_DIR = ".vscode"
CONSOLIDATED_DB_RELPATH = IDE_SETTINGS_DIR + "/" + COMPILE_COMMANDS_JSON  # Relative to the project root
CPP_PROPERTIES_RELPATH = IDE_SETTINGS_DIR + "/c_cpp_properties.json"
CPP_PROPERTIES_CONFIG_NAME = "Arduino"
CPP_PROPERTIES_VERSION = 4

# =============================================================================
# Argument Normalization
# =============================================================================

IMPLICIT_HEADER = "Arduino.h"  # Header every sketch translation unit implicitly includes
MAX_RESPONSE_FILE_DEPTH = 8  # Nesting limit for @file expansion

# Include path flags whose value is a directory (separate, fused or '=' form)
INCLUDE_PATH_FLAGS = ("-I", "-isystem", "-iquote", "-idirafter")

# Flags only relevant to preprocessing runs recorded in the build cache
CACHE_ONLY_FLAGS = ("-E", "-CC", "-w", "-c")

# Output targets meaning "no object file was produced"
NULL_OUTPUT_TARGETS = ("/dev/null", "nul", "NUL")

# Recognized translation unit extensions (".S" is case sensitive)
SOURCE_EXTENSIONS = (".ino.cpp", ".ino", ".c", ".cc", ".cpp", ".cxx", ".m", ".mm", ".s", ".sx", ".S")

# Sketch entry point extensions the toolchain translates to "<name>.cpp"
SKETCH_EXTENSIONS = (".ino", ".pde")

# =============================================================================
# Merge Results
# =============================================================================

NO_ARTIFACT = -1  # Merge count reported when no build artifact was found at all

# =============================================================================
# Exception Classes
# =============================================================================


class SketchCheckError(Exception):
    """Base exception for all sketchCheck errors.

    All sketchCheck exceptions carry an exit_code attribute that indicates
    what exit code the program should use when this error is caught at the
    main entry point.
    """

    def __init__(self, message: str, exit_code: int = EXIT_RUNTIME_ERROR):
        super().__init__(message)
        self.exit_code = exit_code


# Validation errors (EXIT_INVALID_ARGS)
class ValidationError(SketchCheckError):
    """Raised when input validation fails (arguments, paths, etc)."""

    def __init__(self, message: str):
        super().__init__(message, EXIT_INVALID_ARGS)


class BuildDirectoryError(ValidationError):
    """Raised when build directory is invalid or inaccessible."""


# Storage errors (EXIT_RUNTIME_ERROR)
class StorageError(SketchCheckError):
    """Raised when reading or writing persisted JSON fails."""


class DatabaseWriteError(StorageError):
    """Raised when the consolidated database cannot be written back.

    The merge itself succeeded; ``result`` holds the in-memory merge result so
    callers can retry persistence or report what would have been written.
    """

    def __init__(self, message: str, result: object = None):
        super().__init__(message)
        self.result = result
