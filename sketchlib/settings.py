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
"""Configuration objects for diagnostic visibility and database synchronization.

Example usage:
    from sketchlib.settings import DiagnosticPolicy, SyncSettings

    policy = DiagnosticPolicy.from_flags(allow_outside=True)
    settings = SyncSettings.for_project("/path/to/sketch")
"""

import os
from dataclasses import dataclass

from sketchlib.constants import CONSOLIDATED_DB_RELPATH, CPP_PROPERTIES_RELPATH, IMPLICIT_HEADER


@dataclass(frozen=True)
class DiagnosticPolicy:
    """Visibility policy for diagnostics reported against files outside the project.

    Attributes:
        skip_warnings_outside_workspace: Drop warnings for external files even when
            external diagnostics are allowed
        allow_outside_diagnostics: Report diagnostics for files outside the project at all
    """

    skip_warnings_outside_workspace: bool = True
    allow_outside_diagnostics: bool = False

    @staticmethod
    def from_flags(allow_outside: bool = False, show_outside_warnings: bool = False) -> "DiagnosticPolicy":
        """Build a policy from command-line style flags.

        Args:
            allow_outside: Report diagnostics for external files
            show_outside_warnings: Also report warnings for external files

        Returns:
            Immutable DiagnosticPolicy
        """
        return DiagnosticPolicy(skip_warnings_outside_workspace=not show_outside_warnings, allow_outside_diagnostics=allow_outside)


@dataclass(frozen=True)
class SyncSettings:
    """Settings for one compilation database synchronization run.

    Attributes:
        implicit_header: Header injected with -include into every entry
        database_path: Absolute path of the consolidated compilation database
        cpp_properties_path: Absolute path of c_cpp_properties.json
        update_cpp_properties: Also refresh the IntelliSense include paths
    """

    implicit_header: str
    database_path: str
    cpp_properties_path: str
    update_cpp_properties: bool = False

    def __post_init__(self) -> None:
        """Validate settings values."""
        assert self.implicit_header, "implicit_header must not be empty"
        assert os.path.isabs(self.database_path), "database_path must be absolute"
        assert os.path.isabs(self.cpp_properties_path), "cpp_properties_path must be absolute"

    @staticmethod
    def for_project(project_root: str, implicit_header: str = IMPLICIT_HEADER, database_path: str = "", update_cpp_properties: bool = False) -> "SyncSettings":
        """Factory method deriving the well-known output locations from a project root.

        Args:
            project_root: Root directory of the sketch project
            implicit_header: Header to inject (default: Arduino.h)
            database_path: Explicit database path; empty uses <project>/.vscode/compile_commands.json
            update_cpp_properties: Also refresh c_cpp_properties.json

        Returns:
            Immutable SyncSettings instance
        """
        root = os.path.abspath(project_root)
        db_path = os.path.abspath(database_path) if database_path else os.path.join(root, *CONSOLIDATED_DB_RELPATH.split("/"))
        props_path = os.path.join(root, *CPP_PROPERTIES_RELPATH.split("/"))
        return SyncSettings(implicit_header=implicit_header, database_path=db_path, cpp_properties_path=props_path, update_cpp_properties=update_cpp_properties)
