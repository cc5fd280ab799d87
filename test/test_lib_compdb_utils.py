#!/usr/bin/env python3
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
"""Tests for sketchlib.compdb_utils module (artifact classification and merging)."""

import os
import sys
import json
from pathlib import Path
from typing import Any, Callable, Dict, List

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from sketchlib.compdb_types import AbsentArtifact, CacheArtifact, PrimaryArtifact
from sketchlib.compdb_utils import load_consolidated_database, merge_compile_database, read_build_artifact
from sketchlib.constants import NO_ARTIFACT, DatabaseWriteError
from sketchlib.file_utils import ProjectBoundary, ProjectFileIndex

pytestmark = pytest.mark.skipif(os.name == "nt", reason="POSIX path layout")

WriteJson = Callable[[str, str, Any], str]


def _database_path(project: Dict[str, str]) -> str:
    return os.path.join(project["root"], ".vscode", "compile_commands.json")


def _load(path: str) -> List[Dict[str, Any]]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


class TestReadBuildArtifact:
    """Test classification of the build directory contents."""

    def test_primary(self, build_dir: str, sketch_project: Dict[str, str], primary_artifact: str) -> None:
        artifact = read_build_artifact(build_dir, sketch_project["root"])

        assert isinstance(artifact, PrimaryArtifact)
        assert artifact.path == primary_artifact
        assert len(artifact.entries) == 2
        assert artifact.entries[1].uses_command_form

    def test_primary_skips_malformed(self, build_dir: str, write_json: WriteJson) -> None:
        write_json(
            build_dir,
            "compile_commands.json",
            [{"directory": "/p", "file": "a.c", "arguments": ["gcc", "a.c"]}, {"directory": "/p", "arguments": ["gcc"]}, {"directory": "/p", "file": "b.c", "arguments": ["gcc"], "command": "gcc b.c"}],
        )

        artifact = read_build_artifact(build_dir, "/p")

        assert isinstance(artifact, PrimaryArtifact)
        assert len(artifact.entries) == 1
        assert artifact.skipped == 2

    def test_non_array_primary_falls_back(self, build_dir: str, write_json: WriteJson) -> None:
        write_json(build_dir, "compile_commands.json", {"version": 1})
        write_json(build_dir, "includes.cache", [{"compile_task": {"args": ["gcc", "-c", "a.c"]}}])

        artifact = read_build_artifact(build_dir, "/p")

        assert isinstance(artifact, CacheArtifact)
        assert "expected a JSON array" in artifact.primary_error
        assert artifact.entries[0].file == "/p/a.c"

    def test_absent(self, build_dir: str) -> None:
        artifact = read_build_artifact(build_dir, "/p")

        assert isinstance(artifact, AbsentArtifact)
        assert "includes.cache" in artifact.reason


class TestMergeCompileDatabase:
    """Test reconciliation into the consolidated database."""

    def test_first_merge(self, build_dir: str, sketch_project: Dict[str, str], primary_artifact: str) -> None:
        """Generated sketch translation units are stored against the sketch file."""
        db_path = _database_path(sketch_project)

        result = merge_compile_database(build_dir, ProjectBoundary([sketch_project["root"]]), db_path)

        assert result.count == 2
        assert result.source == "primary"
        assert result.written is True
        stored = _load(db_path)
        assert [(e["directory"], e["file"]) for e in stored] == [(sketch_project["root"], "Blink.ino"), (sketch_project["root"], "helper.cpp")]

        sketch_args = stored[0]["arguments"]
        assert sketch_args[:3] == ["avr-g++", "-include", "Arduino.h"]
        assert sketch_project["sketch"] in sketch_args
        assert not any(arg.endswith("Blink.ino.cpp") for arg in sketch_args)
        assert "-I" + os.path.join(build_dir, "src") in sketch_args

        assert "arguments" not in stored[1]
        assert stored[1]["command"].startswith("avr-g++ -include Arduino.h -c ")

    def test_idempotent(self, build_dir: str, sketch_project: Dict[str, str], primary_artifact: str) -> None:
        db_path = _database_path(sketch_project)
        boundary = ProjectBoundary([sketch_project["root"]])

        merge_compile_database(build_dir, boundary, db_path)
        first = _load(db_path)
        result = merge_compile_database(build_dir, boundary, db_path)

        assert _load(db_path) == first
        assert result.kept_existing == 0
        assert len(result.entries) == 2

    def test_keys_unique(self, build_dir: str, sketch_project: Dict[str, str], write_json: WriteJson) -> None:
        """Duplicate entries in one artifact collapse to the last one."""
        helper = sketch_project["helper"]
        write_json(
            build_dir,
            "compile_commands.json",
            [
                {"directory": build_dir, "arguments": ["g++", "-DFIRST", helper], "file": helper},
                {"directory": sketch_project["root"], "arguments": ["g++", "-DSECOND", "helper.cpp"], "file": "helper.cpp"},
            ],
        )
        db_path = _database_path(sketch_project)

        for _ in range(3):
            result = merge_compile_database(build_dir, ProjectBoundary([sketch_project["root"]]), db_path)

        stored = _load(db_path)
        keys = [(e["directory"], e["file"]) for e in stored]
        assert len(keys) == len(set(keys)) == 1
        assert "-DSECOND" in stored[0]["arguments"]
        assert result.count == 1

    def test_fresh_entry_wins(self, build_dir: str, sketch_project: Dict[str, str], primary_artifact: str, write_json: WriteJson) -> None:
        root = sketch_project["root"]
        Path(root, "extra.cpp").write_text("int extra;\n")
        db_path = write_json(
            root,
            os.path.join(".vscode", "compile_commands.json"),
            [
                {"directory": root, "file": "helper.cpp", "arguments": ["old-g++", "-DSTALE", "helper.cpp"]},
                {"directory": root, "file": "extra.cpp", "arguments": ["g++", "-include", "Arduino.h", "extra.cpp"]},
            ],
        )

        result = merge_compile_database(build_dir, ProjectBoundary([root]), db_path)

        stored = _load(db_path)
        assert [e["file"] for e in stored] == ["helper.cpp", "extra.cpp", "Blink.ino"]
        assert "-DSTALE" not in stored[0]["command"]
        assert stored[0]["command"].startswith("avr-g++")
        assert stored[1]["arguments"] == ["g++", "-include", "Arduino.h", os.path.join(root, "extra.cpp")]
        assert result.kept_existing == 1

    def test_partial_build_keeps_existing(self, build_dir: str, sketch_project: Dict[str, str], primary_artifact: str, write_json: WriteJson) -> None:
        """An empty primary artifact reports 0 and keeps previously merged entries."""
        db_path = _database_path(sketch_project)
        boundary = ProjectBoundary([sketch_project["root"]])
        merge_compile_database(build_dir, boundary, db_path)

        write_json(build_dir, "compile_commands.json", [])
        result = merge_compile_database(build_dir, boundary, db_path)

        assert result.count == 0
        assert result.has_artifact
        assert result.kept_existing == 2
        assert len(_load(db_path)) == 2

    def test_drops_stale_existing_entries(self, build_dir: str, sketch_project: Dict[str, str], write_json: WriteJson) -> None:
        root = sketch_project["root"]
        write_json(build_dir, "compile_commands.json", [])
        db_path = write_json(
            root,
            os.path.join(".vscode", "compile_commands.json"),
            [
                {"directory": root, "file": "gone.cpp", "arguments": ["g++", "gone.cpp"]},
                {"directory": "/usr/share/arduino/core", "file": "wiring.c", "arguments": ["gcc", "wiring.c"]},
                {"directory": root, "file": "helper.cpp", "arguments": ["g++", "helper.cpp"]},
            ],
        )

        result = merge_compile_database(build_dir, ProjectBoundary([root]), db_path)

        assert [e["file"] for e in _load(db_path)] == ["helper.cpp"]
        assert result.dropped_existing == 2

    def test_non_project_entries_discarded(self, build_dir: str, sketch_project: Dict[str, str], write_json: WriteJson) -> None:
        """Core library files, in or out of the build directory, never reach the database."""
        core_in_build = os.path.join(build_dir, "core", "wiring.c")
        write_json(
            build_dir,
            "compile_commands.json",
            [
                {"directory": build_dir, "arguments": ["gcc", core_in_build], "file": core_in_build},
                {"directory": "/usr/share/arduino", "arguments": ["gcc", "wiring_digital.c"], "file": "wiring_digital.c"},
                {"directory": sketch_project["root"], "arguments": ["g++", "helper.cpp"], "file": "helper.cpp"},
            ],
        )
        db_path = _database_path(sketch_project)

        result = merge_compile_database(build_dir, ProjectBoundary([sketch_project["root"]]), db_path)

        assert result.count == 1
        assert result.discarded == 2
        assert [e["file"] for e in _load(db_path)] == ["helper.cpp"]

    def test_cache_fallback(self, build_dir: str, sketch_project: Dict[str, str], write_json: WriteJson) -> None:
        helper = sketch_project["helper"]
        write_json(
            build_dir,
            "includes.cache",
            [{"compile_task": {"args": ["avr-g++", "-c", "-w", helper, "-o", "/dev/null"]}, "compile": {"source_path": helper}}],
        )
        db_path = _database_path(sketch_project)

        result = merge_compile_database(build_dir, ProjectBoundary([sketch_project["root"]]), db_path)

        assert result.source == "cache"
        assert result.count == 1
        assert any("compile_commands.json" in w for w in result.warnings)
        assert _load(db_path) == [{"directory": sketch_project["root"], "file": "helper.cpp", "arguments": ["avr-g++", "-include", "Arduino.h", helper]}]

    def test_no_artifact(self, build_dir: str, sketch_project: Dict[str, str]) -> None:
        db_path = _database_path(sketch_project)

        result = merge_compile_database(build_dir, ProjectBoundary([sketch_project["root"]]), db_path)

        assert result.count == NO_ARTIFACT
        assert not result.has_artifact
        assert result.written is False
        assert not os.path.exists(db_path)

    def test_corrupt_existing_database(self, build_dir: str, sketch_project: Dict[str, str], primary_artifact: str) -> None:
        db_path = _database_path(sketch_project)
        os.makedirs(os.path.dirname(db_path))
        Path(db_path).write_text("[{oops")

        result = merge_compile_database(build_dir, ProjectBoundary([sketch_project["root"]]), db_path)

        assert result.written is True
        assert len(_load(db_path)) == 2
        assert any(db_path in w for w in result.warnings)

    def test_explicit_file_index(self, build_dir: str, sketch_project: Dict[str, str], primary_artifact: str) -> None:
        """A caller-built index is used for retargeting instead of rescanning."""
        boundary = ProjectBoundary([sketch_project["root"]])
        index = ProjectFileIndex(by_name={"helper.cpp": sketch_project["helper"]})

        result = merge_compile_database(build_dir, boundary, _database_path(sketch_project), file_index=index)

        # Blink.ino.cpp cannot be retargeted without the sketch in the index
        assert result.count == 1
        assert result.discarded == 1

    def test_write_failure_keeps_result(self, build_dir: str, sketch_project: Dict[str, str], primary_artifact: str) -> None:
        blocker = os.path.join(sketch_project["root"], "blocker")
        Path(blocker).write_text("not a directory")

        with pytest.raises(DatabaseWriteError) as exc_info:
            merge_compile_database(build_dir, ProjectBoundary([sketch_project["root"]]), os.path.join(blocker, "compile_commands.json"))

        assert exc_info.value.result.count == 2
        assert exc_info.value.result.written is False
        assert len(exc_info.value.result.entries) == 2


class TestLoadConsolidatedDatabase:
    """Test reading the persisted database."""

    def test_missing(self, temp_dir: str) -> None:
        entries, error = load_consolidated_database(os.path.join(temp_dir, "none.json"))
        assert entries == []
        assert "does not exist" in error

    def test_not_array(self, temp_dir: str, write_json: WriteJson) -> None:
        path = write_json(temp_dir, "db.json", {"a": 1})
        entries, error = load_consolidated_database(path)
        assert entries == []
        assert "expected a JSON array" in error
