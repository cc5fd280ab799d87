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
"""Extraction of structured diagnostics from compiler error-stream text.

The toolchain forwards GCC-style diagnostics on stderr, mixed with include-chain
context, progress output and ANSI colors. This module classifies each line once:

    <path>:<line>[:<column>]: (fatal error|error|warning|note): <message>

Include-chain context lines are skipped by an explicit rule, notes are dropped,
and the remaining records are filtered by the project visibility policy.
"""

import os
import re
import logging
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from sketchlib.file_utils import ProjectBoundary, is_bare_drive, resolve_path
from sketchlib.settings import DiagnosticPolicy

logger = logging.getLogger(__name__)

__all__ = ["Severity", "DiagnosticRecord", "DiagnosticScanResult", "extract_diagnostics", "parse_diagnostic_line", "to_problem_list"]

_DIAGNOSTIC_RE = re.compile(
    r"^(?P<path>.+?):(?:(?P<line>\d+):)?(?:(?P<column>\d+):)?\s*(?P<severity>fatal error|error|warning|note):\s*(?P<message>.*)$"
)
_WARNING_CODE_RE = re.compile(r"\[-W([^\]\s]+)\]\s*$")
_ANSI_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")
_INCLUDE_CHAIN_PREFIXES = ("In file included from", "from ")


class Severity(enum.Enum):
    """Severity of a reported diagnostic."""

    ERROR = "Error"
    WARNING = "Warning"


_SEVERITY_MAP = {
    "fatal error": Severity.ERROR,
    "error": Severity.ERROR,
    "warning": Severity.WARNING,
}


@dataclass(frozen=True)
class DiagnosticRecord:
    """A single compiler diagnostic.

    Attributes:
        severity: Error or Warning
        message: Diagnostic text as printed by the compiler (including any [-W...] suffix)
        file: Absolute path of the file the diagnostic refers to
        line: 1-based line number
        column: 1-based column number
        code: Warning option name extracted from a trailing [-W<code>], if any
    """

    severity: Severity
    message: str
    file: str
    line: int
    column: int
    code: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the problem-list shape consumed by the IDE."""
        return {"severity": self.severity.value, "message": self.message, "line": self.line, "column": self.column, "code": self.code}


@dataclass
class DiagnosticScanResult:
    """Diagnostics of one build, grouped by file.

    Attributes:
        by_file: Mapping of absolute file path to records in first-seen order
        error_count: Number of Error records kept
        warning_count: Number of Warning records kept
        dropped_count: Records dropped by the visibility policy
    """

    by_file: Dict[str, List[DiagnosticRecord]] = field(default_factory=dict)
    error_count: int = 0
    warning_count: int = 0
    dropped_count: int = 0

    @property
    def file_count(self) -> int:
        """Number of files with at least one diagnostic."""
        return len(self.by_file)

    @property
    def diagnostic_count(self) -> int:
        """Total number of diagnostics kept."""
        return self.error_count + self.warning_count

    def add(self, record: DiagnosticRecord) -> None:
        self.by_file.setdefault(record.file, []).append(record)
        if record.severity == Severity.ERROR:
            self.error_count += 1
        else:
            self.warning_count += 1


def _to_position(value: Optional[str]) -> int:
    """Convert a matched line/column group to a 1-based position (default 1)."""
    if not value:
        return 1
    try:
        number = int(value)
    except ValueError:
        return 1
    return number if number >= 1 else 1


def _is_include_chain_line(line: str) -> bool:
    stripped = line.lstrip()
    return any(stripped.startswith(prefix) for prefix in _INCLUDE_CHAIN_PREFIXES)


def _names_a_file(path: str) -> bool:
    """Check that a location without a line number still looks like a file path."""
    return "/" in path or "\\" in path or bool(os.path.splitext(path)[1])


def parse_diagnostic_line(line: str, working_dir: str) -> Optional[DiagnosticRecord]:
    """Parse one error-stream line into a DiagnosticRecord.

    Args:
        line: Single line without line terminator
        working_dir: Directory used to resolve relative paths

    Returns:
        DiagnosticRecord, or None for non-diagnostic lines, include-chain context,
        notes and lines whose path is a bare drive letter
    """
    if _is_include_chain_line(line):
        return None

    match = _DIAGNOSTIC_RE.match(line.strip())
    if not match:
        return None

    severity = _SEVERITY_MAP.get(match.group("severity"))
    if severity is None:
        # Notes always belong to a preceding error or warning
        return None

    raw_path = match.group("path").strip()
    if not raw_path or is_bare_drive(raw_path):
        logger.debug("Rejecting diagnostic with invalid path: %s", line)
        return None

    if match.group("line") is None and not _names_a_file(raw_path):
        # Tool-level messages such as "collect2: error: ld returned 1 exit status"
        return None

    file_path = resolve_path(working_dir, raw_path)

    message = match.group("message").strip()
    code_match = _WARNING_CODE_RE.search(message)
    code = code_match.group(1) if code_match else None

    return DiagnosticRecord(
        severity=severity,
        message=message,
        file=file_path,
        line=_to_position(match.group("line")),
        column=_to_position(match.group("column")),
        code=code,
    )


def is_visible(record: DiagnosticRecord, boundary: ProjectBoundary, policy: DiagnosticPolicy) -> bool:
    """Apply the project visibility policy to a record.

    Project diagnostics are always visible. External diagnostics require
    allow_outside_diagnostics; external warnings are additionally hidden when
    skip_warnings_outside_workspace is set.
    """
    if boundary.contains(record.file):
        return True
    if not policy.allow_outside_diagnostics:
        return False
    if record.severity == Severity.WARNING and policy.skip_warnings_outside_workspace:
        return False
    return True


def extract_diagnostics(text: str, working_dir: str, boundary: ProjectBoundary, policy: Optional[DiagnosticPolicy] = None) -> DiagnosticScanResult:
    """Extract structured diagnostics from raw compiler error-stream text.

    Pure function of its inputs: calling it twice with the same text returns equal results.

    Args:
        text: Raw stderr capture of one build
        working_dir: Working directory of the build
        boundary: Project boundary used by the visibility policy
        policy: Visibility policy (default: DiagnosticPolicy())

    Returns:
        DiagnosticScanResult grouped by resolved file path
    """
    if policy is None:
        policy = DiagnosticPolicy()

    result = DiagnosticScanResult()
    if not text:
        return result

    normalized = _ANSI_ESCAPE_RE.sub("", text.replace("\r\n", "\n").replace("\r", "\n"))
    for line in normalized.split("\n"):
        record = parse_diagnostic_line(line, working_dir)
        if record is None:
            continue
        if not is_visible(record, boundary, policy):
            result.dropped_count += 1
            continue
        result.add(record)

    logger.debug(
        "Extracted %d diagnostics (%d errors, %d warnings) in %d files, dropped %d",
        result.diagnostic_count,
        result.error_count,
        result.warning_count,
        result.file_count,
        result.dropped_count,
    )
    return result


def to_problem_list(result: DiagnosticScanResult) -> Dict[str, List[Dict[str, Any]]]:
    """Project a scan result to the mapping consumed by the IDE problem list.

    Returns:
        Mapping of absolute path to ordered list of {severity, message, line, column, code}
    """
    return {path: [record.to_dict() for record in records] for path, records in result.by_file.items()}
