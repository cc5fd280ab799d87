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
"""Maintenance of the IDE's c_cpp_properties.json IntelliSense configuration.

The consolidated compilation database gives exact per-file flags, but the IDE
also keeps a project-wide include path list in c_cpp_properties.json. This
module derives that list from the merged entries and merges it into the
'Arduino' configuration without clobbering user edits.
"""

import os
import re
import copy
import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sketchlib.constants import CPP_PROPERTIES_CONFIG_NAME, CPP_PROPERTIES_VERSION, INCLUDE_PATH_FLAGS
from sketchlib.compdb_types import CompileEntry
from sketchlib.file_utils import normalize_include_path, resolve_path
from sketchlib.storage_utils import read_json_file, write_json_atomic

logger = logging.getLogger(__name__)

_GLOB_CHARS_RE = re.compile(r"[\*\?\[]")
_ESP32_RE = re.compile(r"(^|/)esp32[^/]*(/|$)", re.IGNORECASE)
_ESP32_COMPILER_RE = re.compile(r"esp32|xtensa-esp32|riscv32-esp-elf", re.IGNORECASE)

DEFAULT_C_STANDARD = "c11"
DEFAULT_CPP_STANDARD = "c++17"
ESP32_C_STANDARD = "c17"
ESP32_CPP_STANDARD = "c++23"
DEFAULT_INTELLISENSE_MODE = "gcc-x64"


def get_glob_base(path: str) -> str:
    """Return the part of a path before the first glob character."""
    normalized = normalize_include_path(path)
    match = _GLOB_CHARS_RE.search(normalized)
    return normalized[: match.start()] if match else normalized


def _include_path_exists(path: str) -> bool:
    base = get_glob_base(path)
    return bool(base) and os.path.exists(base)


def collect_include_paths(entries: Iterable[CompileEntry]) -> List[str]:
    """Collect include directories referenced by compilation database entries.

    Args:
        entries: Normalized compilation database entries

    Returns:
        Ordered, de-duplicated list of normalized include directories
    """
    seen = set()
    include_paths: List[str] = []

    def _add(directory: str, value: str) -> None:
        if not value or value.startswith("="):
            return
        normalized = normalize_include_path(resolve_path(directory, value))
        if normalized not in seen:
            seen.add(normalized)
            include_paths.append(normalized)

    for entry in entries:
        arguments = entry.arguments
        i = 0
        while i < len(arguments):
            arg = arguments[i]
            if arg in INCLUDE_PATH_FLAGS and i + 1 < len(arguments):
                _add(entry.directory, arguments[i + 1])
                i += 2
                continue
            for flag in INCLUDE_PATH_FLAGS:
                if arg.startswith(flag) and len(arg) > len(flag):
                    _add(entry.directory, arg[len(flag) :])
                    break
            i += 1

    return include_paths


def find_compiler_path(entries: Sequence[CompileEntry]) -> Optional[str]:
    """Return the normalized executable of the first entry, if any."""
    for entry in entries:
        if entry.arguments:
            return normalize_include_path(entry.arguments[0])
    return None


def _is_esp32_family(include_paths: Sequence[str], compiler_path: str) -> bool:
    if _ESP32_COMPILER_RE.search(compiler_path or ""):
        return True
    return any(_ESP32_RE.search(str(p)) for p in include_paths)


def _ensure_config_shape(obj: Any) -> Dict[str, Any]:
    if not isinstance(obj, dict):
        obj = {}
    obj.setdefault("version", CPP_PROPERTIES_VERSION)
    if not isinstance(obj.get("configurations"), list):
        obj["configurations"] = []
    return obj


def _find_target_configuration(config: Dict[str, Any]) -> Dict[str, Any]:
    """Find (or create) the configuration this tool maintains."""
    configurations = config["configurations"]
    for candidate in configurations:
        if isinstance(candidate, dict) and candidate.get("name") == CPP_PROPERTIES_CONFIG_NAME:
            return candidate

    # An unnamed single configuration is adopted
    if len(configurations) == 1 and isinstance(configurations[0], dict) and not configurations[0].get("name"):
        configurations[0]["name"] = CPP_PROPERTIES_CONFIG_NAME
        return configurations[0]

    target: Dict[str, Any] = {"name": CPP_PROPERTIES_CONFIG_NAME}
    configurations.append(target)
    return target


def update_cpp_properties(
    properties_path: str,
    include_paths: Sequence[str],
    compiler_path: Optional[str] = None,
    compile_commands: Optional[str] = None,
    finalize: bool = False,
    reset: bool = False,
) -> bool:
    """Merge include paths into the 'Arduino' configuration of c_cpp_properties.json.

    - existing include paths whose base directory no longer exists are pruned
    - new include paths are appended after user-defined ones; with finalize the
      list is replaced by include_paths
    - reset starts from an empty include path list (clean builds)
    - cStandard/cppStandard/intelliSenseMode/defines are only set when missing,
      except for the ESP32 family which always gets c17 / c++23
    - nothing is written when the merged content equals the current file

    Args:
        properties_path: Path of c_cpp_properties.json
        include_paths: Include directories from the latest build
        compiler_path: Compiler executable to record, if known
        compile_commands: Consolidated database path to reference, if any
        finalize: Replace the include path list instead of appending
        reset: Drop existing include paths before merging

    Returns:
        True if the file was written

    Raises:
        OSError: If the file cannot be written
    """
    current, _ = read_json_file(properties_path)
    config = _ensure_config_shape(copy.deepcopy(current) if current is not None else {})
    target = _find_target_configuration(config)

    existing = target.get("includePath")
    existing_paths = [str(p) for p in existing] if isinstance(existing, list) and not reset else []
    existing_paths = [p for p in existing_paths if _include_path_exists(p)]

    if finalize:
        candidates: List[str] = []
    else:
        candidates = list(existing_paths)
    seen = set(candidates)
    for path in include_paths:
        value = str(path or "")
        if value and value not in seen:
            seen.add(value)
            candidates.append(value)

    if compiler_path:
        target["compilerPath"] = compiler_path
    if compile_commands:
        target["compileCommands"] = compile_commands
    if not isinstance(target.get("defines"), list):
        target["defines"] = []

    if _is_esp32_family(existing_paths + list(include_paths), str(target.get("compilerPath") or "")):
        target["cStandard"] = ESP32_C_STANDARD
        target["cppStandard"] = ESP32_CPP_STANDARD
    else:
        target.setdefault("cStandard", DEFAULT_C_STANDARD)
        target.setdefault("cppStandard", DEFAULT_CPP_STANDARD)
    target.setdefault("intelliSenseMode", DEFAULT_INTELLISENSE_MODE)
    target["includePath"] = candidates

    if current == config:
        logger.debug("c_cpp_properties.json unchanged: %s", properties_path)
        return False

    write_json_atomic(properties_path, config)
    logger.info("Updated %s (%d include paths)", properties_path, len(candidates))
    return True
