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
"""Data types shared by the compilation database reader, reconstructor and merger.

These types are the canonical in-memory representation of compilation database
entries. Both upstream schemas (the toolchain's compile_commands.json and its
incremental-build cache) are mapped to CompileEntry before any further
processing, so downstream code never branches on raw JSON shapes.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple, Union

from sketchlib.file_utils import path_key, resolve_path


@dataclass(frozen=True)
class CompileEntry:
    """One translation unit of a compilation database.

    Attributes:
        directory: Working directory of the compile invocation
        file: Source file, absolute or relative to directory
        arguments: Compiler invocation, starting with the executable
        command: Serialized command string when the entry uses the 'command' form, else None
    """

    directory: str
    file: str
    arguments: Tuple[str, ...]
    command: Optional[str] = None

    @property
    def uses_command_form(self) -> bool:
        """True when the entry is stored as a single command string."""
        return self.command is not None

    def resolved_file(self) -> str:
        """Absolute path of the source file."""
        return resolve_path(self.directory, self.file)

    def key(self) -> Tuple[str, str]:
        """Uniqueness key (normalized directory, normalized file)."""
        return (path_key(self.directory), path_key(self.file))

    def to_json(self) -> Dict[str, Any]:
        """Convert to the compile_commands.json element shape.

        Returns:
            Dictionary with directory, file and either command or arguments
        """
        # Local import: arg_utils depends on this module
        from sketchlib.arg_utils import stringify_arguments

        data: Dict[str, Any] = {"directory": self.directory, "file": self.file}
        if self.uses_command_form:
            data["command"] = stringify_arguments(self.arguments)
        else:
            data["arguments"] = list(self.arguments)
        return data

    @staticmethod
    def from_json(obj: Any) -> "CompileEntry":
        """Parse one compile_commands.json element.

        Args:
            obj: Decoded JSON element

        Returns:
            CompileEntry with arguments tokenized from 'command' when needed

        Raises:
            ValueError: If the element does not have the expected shape
        """
        from sketchlib.arg_utils import tokenize_command

        if not isinstance(obj, dict):
            raise ValueError(f"entry is not an object: {type(obj).__name__}")

        directory = obj.get("directory")
        file_path = obj.get("file")
        if not isinstance(directory, str) or not directory:
            raise ValueError("entry has no 'directory'")
        if not isinstance(file_path, str) or not file_path:
            raise ValueError("entry has no 'file'")

        has_arguments = "arguments" in obj
        has_command = "command" in obj
        if has_arguments == has_command:
            raise ValueError("entry must have exactly one of 'arguments' or 'command'")

        if has_command:
            command = obj["command"]
            if not isinstance(command, str):
                raise ValueError("'command' is not a string")
            arguments = tokenize_command(command)
            if not arguments:
                raise ValueError("'command' is empty")
            return CompileEntry(directory=directory, file=file_path, arguments=tuple(arguments), command=command)

        raw_arguments = obj["arguments"]
        if not isinstance(raw_arguments, list) or not all(isinstance(arg, str) for arg in raw_arguments):
            raise ValueError("'arguments' is not a list of strings")
        if not raw_arguments:
            raise ValueError("'arguments' is empty")
        return CompileEntry(directory=directory, file=file_path, arguments=tuple(raw_arguments))


@dataclass(frozen=True)
class BuildCacheEntry:
    """One compile task from the toolchain's incremental-build cache.

    Attributes:
        arguments: Recorded compiler arguments
        source_path: Source file recorded by the toolchain, if any
        object_path: Object file recorded by the toolchain, if any
        discards_object: True when the task wrote its object to a null device
    """

    arguments: Tuple[str, ...]
    source_path: Optional[str] = None
    object_path: Optional[str] = None
    discards_object: bool = False


@dataclass(frozen=True)
class PrimaryArtifact:
    """A parsed compile_commands.json from the build directory.

    Attributes:
        path: Artifact path
        entries: Well-formed entries in file order
        skipped: Number of malformed elements that were skipped
    """

    path: str
    entries: List[CompileEntry]
    skipped: int = 0


@dataclass(frozen=True)
class CacheArtifact:
    """Entries reconstructed from the incremental-build cache.

    Attributes:
        path: Cache file path
        entries: Reconstructed entries
        primary_error: Why the primary artifact could not be used
    """

    path: str
    entries: List[CompileEntry]
    primary_error: str = ""


@dataclass(frozen=True)
class AbsentArtifact:
    """No usable build artifact was found.

    Attributes:
        reason: Human-readable explanation (includes parse errors)
    """

    reason: str


BuildArtifact = Union[PrimaryArtifact, CacheArtifact, AbsentArtifact]
