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
"""Tests for sketchlib.storage_utils module."""

import os
import sys
import json
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from sketchlib.storage_utils import read_json_file, read_text_file, write_json_atomic


class TestReadJsonFile:
    """Test non-raising JSON reads."""

    def test_missing(self, temp_dir: str) -> None:
        data, error = read_json_file(os.path.join(temp_dir, "missing.json"))
        assert data is None
        assert "does not exist" in error

    def test_malformed(self, temp_dir: str) -> None:
        path = os.path.join(temp_dir, "bad.json")
        Path(path).write_text("[1, 2")

        data, error = read_json_file(path)

        assert data is None
        assert error.startswith(path)

    def test_valid(self, temp_dir: str) -> None:
        path = os.path.join(temp_dir, "ok.json")
        Path(path).write_text('{"a": [1, 2]}')

        assert read_json_file(path) == ({"a": [1, 2]}, None)


class TestReadTextFile:
    """Test text reads."""

    def test_missing(self, temp_dir: str) -> None:
        assert read_text_file(os.path.join(temp_dir, "missing.txt")) is None

    def test_invalid_utf8_replaced(self, temp_dir: str) -> None:
        path = os.path.join(temp_dir, "log.txt")
        Path(path).write_bytes(b"error: \xff bad\n")

        assert read_text_file(path) == "error: \ufffd bad\n"


class TestWriteJsonAtomic:
    """Test atomic JSON writes."""

    def test_creates_parents(self, temp_dir: str) -> None:
        path = os.path.join(temp_dir, ".vscode", "compile_commands.json")

        write_json_atomic(path, [{"file": "a.c"}])

        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
        assert json.loads(text) == [{"file": "a.c"}]
        assert text.endswith("\n")
        assert not os.path.exists(path + ".tmp")

    def test_replaces_existing(self, temp_dir: str) -> None:
        path = os.path.join(temp_dir, "db.json")
        write_json_atomic(path, [1])
        write_json_atomic(path, [2])

        assert read_json_file(path) == ([2], None)

    def test_failure_raises_and_cleans_up(self, temp_dir: str) -> None:
        blocker = os.path.join(temp_dir, "blocker")
        Path(blocker).write_text("")

        with pytest.raises(OSError):
            write_json_atomic(os.path.join(blocker, "db.json"), [])
