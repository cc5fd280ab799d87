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
"""Tests for sketchlib.color_utils module."""

import io
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from sketchlib.color_utils import (
    Colors,
    colored,
    format_diagnostic,
    get_diagnostic_color,
    print_error,
    print_info,
    print_success,
    print_warning,
    should_use_color,
)


class TestColored:
    """Tests for colored function."""

    def test_basic_coloring(self) -> None:
        result = colored("test", Colors.RED)
        assert "test" in result

    def test_no_color(self) -> None:
        """Without codes the text is returned unchanged."""
        assert colored("test", "", "") == "test"


class TestPrintFunctions:
    """Tests for print_* convenience functions."""

    def test_print_success(self) -> None:
        output = io.StringIO()
        print_success("Merged 2 entries", file=output)
        assert "Merged 2 entries" in output.getvalue()

    def test_print_error_prefix(self) -> None:
        output = io.StringIO()
        print_error("Cannot write", file=output)
        assert "Error: Cannot write" in output.getvalue()

    def test_print_warning_without_prefix(self) -> None:
        output = io.StringIO()
        print_warning("No compilation data", file=output, prefix=False)
        assert "Warning:" not in output.getvalue()
        assert "No compilation data" in output.getvalue()

    def test_print_info(self) -> None:
        output = io.StringIO()
        print_info("Updated include paths", file=output)
        assert "Updated include paths" in output.getvalue()


class TestColorSupport:
    """Tests for color support detection."""

    def test_no_color_wins(self) -> None:
        assert should_use_color(force_color=True, no_color=True) is False

    def test_default_is_bool(self) -> None:
        assert isinstance(should_use_color(), bool)

    def test_no_color_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("NO_COLOR", "1")
        assert should_use_color() is False


class TestDiagnosticFormatting:
    """Tests for diagnostic severity coloring."""

    def test_severity_colors(self) -> None:
        assert get_diagnostic_color("Error") == (Colors.RED, Colors.BRIGHT)
        assert get_diagnostic_color("Warning") == (Colors.YELLOW, Colors.NORMAL)
        assert get_diagnostic_color("other") == (Colors.WHITE, Colors.NORMAL)

    def test_format_diagnostic(self) -> None:
        line = format_diagnostic("/src/main.cpp", 42, 5, "Error", "'foo' was not declared")

        assert "/src/main.cpp:42:5:" in line
        assert "error:" in line
        assert line.endswith("'foo' was not declared")
