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
"""Pytest configuration and shared base fixtures for sketch-check tests.

Fixture layout:
- temp_dir: isolated scratch directory
- sketch_project: project root with a sketch, a C++ helper and a header
- build_dir: empty build-artifact directory outside the project
- write_json: helper fixture writing JSON files into any directory

Fixture Scopes:
- function: Default, recreated for each test
"""

import os
import sys
import json
import tempfile
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, Generator
import pytest

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def temp_dir() -> Generator[str, None, None]:
    """Create a temporary directory for tests.

    Scope: function (default)
    Use for: File I/O operations that need isolation
    """
    tmpdir = tempfile.mkdtemp(prefix="sketchcheck_test_")
    # Resolve symlinks (macOS /var -> /private/var) so path comparisons are stable
    tmpdir = os.path.realpath(tmpdir)
    yield tmpdir
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def sketch_project(temp_dir: str) -> Dict[str, str]:
    """Create a sketch project.

    Layout:
        Blink/
            Blink.ino
            helper.cpp
            src/util.h

    Scope: function
    Dependencies: temp_dir
    Returns:
        Dictionary with 'root', 'sketch', 'helper' and 'header' absolute paths
    """
    root = Path(temp_dir) / "Blink"
    (root / "src").mkdir(parents=True)
    (root / "Blink.ino").write_text("void setup() {}\nvoid loop() {}\n")
    (root / "helper.cpp").write_text('#include "src/util.h"\nint helper() { return 1; }\n')
    (root / "src" / "util.h").write_text("#pragma once\nint helper();\n")
    return {
        "root": str(root),
        "sketch": str(root / "Blink.ino"),
        "helper": str(root / "helper.cpp"),
        "header": str(root / "src" / "util.h"),
    }


@pytest.fixture
def build_dir(temp_dir: str) -> str:
    """Create an empty build-artifact directory outside the project.

    Scope: function
    Dependencies: temp_dir
    Use for: Testing artifact discovery and merging
    """
    path = Path(temp_dir) / "build" / "sketches" / "ABC123"
    path.mkdir(parents=True)
    return str(path)


@pytest.fixture
def write_json() -> Callable[[str, str, Any], str]:
    """Return a helper writing JSON data to <directory>/<name> and returning the path."""

    def _write(directory: str, name: str, data: Any) -> str:
        path = os.path.join(directory, name)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        return path

    return _write


@pytest.fixture
def primary_artifact(build_dir: str, sketch_project: Dict[str, str], write_json: Callable[[str, str, Any], str]) -> str:
    """Create a compile_commands.json referencing the generated sketch and the helper.

    Scope: function
    Dependencies: build_dir, sketch_project, write_json
    Returns:
        Path of the written compile_commands.json
    """
    generated = os.path.join(build_dir, "sketch", "Blink.ino.cpp")
    os.makedirs(os.path.dirname(generated), exist_ok=True)
    Path(generated).write_text('#include <Arduino.h>\n#line 1 "Blink.ino"\n')
    entries = [
        {
            "directory": build_dir,
            "arguments": ["avr-g++", "-c", "-Isrc", generated, "-o", "sketch/Blink.ino.cpp.o"],
            "file": generated,
        },
        {
            "directory": build_dir,
            "command": f"avr-g++ -c {sketch_project['helper']} -o sketch/helper.cpp.o",
            "file": sketch_project["helper"],
        },
    ]
    return write_json(build_dir, "compile_commands.json", entries)
