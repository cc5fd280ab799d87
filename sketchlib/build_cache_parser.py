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
"""Parser for the toolchain's incremental-build cache (includes.cache).

When the toolchain does not emit compile_commands.json (or emits a broken one),
its include-detection cache still records one preprocessing task per source
file. This module rebuilds equivalent compilation database entries from it.

Cache element shape:
    {"compile_task": {"args": [...]}, "compile": {"source_path": "...", "object_path": "..."}}
"""

import os
import logging
from typing import Any, List, Optional, Sequence

from sketchlib.constants import BUILD_OPTIONS_JSON, BUILD_OPTIONS_SKETCH_LOCATION, CACHE_ONLY_FLAGS, INCLUDES_CACHE_JSON, NULL_OUTPUT_TARGETS
from sketchlib.compdb_types import BuildCacheEntry, CompileEntry
from sketchlib.file_utils import is_source_file, resolve_path
from sketchlib.storage_utils import read_json_file

logger = logging.getLogger(__name__)

__all__ = ["read_build_options", "parse_cache_entries", "find_source_argument", "rewrite_cache_arguments", "reconstruct_compile_entries"]

OUTPUT_FLAG = "-o"


def _find_output_target(arguments: Sequence[str]) -> Optional[str]:
    """Return the value of the last '-o <target>' pair, if any."""
    target = None
    for i, arg in enumerate(arguments):
        if arg == OUTPUT_FLAG and i + 1 < len(arguments):
            target = arguments[i + 1]
    return target


def _is_null_target(target: Optional[str]) -> bool:
    return target is not None and target in NULL_OUTPUT_TARGETS


def read_build_options(build_dir: str) -> Optional[str]:
    """Read the sketchLocation override from build.options.json.

    Args:
        build_dir: Build-artifact directory

    Returns:
        The sketchLocation string, or None when the side-file or field is missing
    """
    data, _ = read_json_file(os.path.join(build_dir, BUILD_OPTIONS_JSON))
    if not isinstance(data, dict):
        return None
    location = data.get(BUILD_OPTIONS_SKETCH_LOCATION)
    if isinstance(location, str) and location.strip():
        return location.strip()
    return None


def parse_cache_entries(data: Any) -> List[BuildCacheEntry]:
    """Map decoded includes.cache JSON to BuildCacheEntry objects.

    Elements that are not objects or carry no argument list are skipped.

    Args:
        data: Decoded JSON (expected to be a list)

    Returns:
        Parsed entries in file order
    """
    if not isinstance(data, list):
        return []

    entries: List[BuildCacheEntry] = []
    for index, element in enumerate(data):
        if not isinstance(element, dict):
            logger.debug("Skipping cache element %d: not an object", index)
            continue

        task = element.get("compile_task")
        compile_info = element.get("compile")
        raw_args = task.get("args") if isinstance(task, dict) else None
        if not isinstance(raw_args, list):
            logger.debug("Skipping cache element %d: no compile_task.args", index)
            continue
        arguments = tuple(str(arg) for arg in raw_args if isinstance(arg, str))

        source_path = None
        object_path = None
        if isinstance(compile_info, dict):
            if isinstance(compile_info.get("source_path"), str) and compile_info["source_path"]:
                source_path = compile_info["source_path"]
            if isinstance(compile_info.get("object_path"), str) and compile_info["object_path"]:
                object_path = compile_info["object_path"]

        entries.append(
            BuildCacheEntry(
                arguments=arguments,
                source_path=source_path,
                object_path=object_path,
                discards_object=_is_null_target(_find_output_target(arguments)),
            )
        )
    return entries


def find_source_argument(arguments: Sequence[str]) -> Optional[str]:
    """Find the source file among the arguments, scanning from the end.

    Args:
        arguments: Compiler arguments

    Returns:
        The last token with a recognized source extension, or None
    """
    for arg in reversed(arguments):
        if is_source_file(arg):
            return arg
    return None


def rewrite_cache_arguments(entry: BuildCacheEntry) -> List[str]:
    """Turn a cached preprocessing task into an indexer-friendly compile command.

    - drops preprocessing-only flags (-E, -CC, -w, -c)
    - rewrites '-o <target>' to the recorded object path when there is one
    - drops the '-o' pair when the task discarded its object output

    Args:
        entry: Cache entry

    Returns:
        New argument list
    """
    result: List[str] = []
    arguments = entry.arguments
    i = 0
    while i < len(arguments):
        arg = arguments[i]

        if i > 0 and arg in CACHE_ONLY_FLAGS:
            i += 1
            continue

        if arg == OUTPUT_FLAG and i + 1 < len(arguments):
            if entry.object_path:
                result.extend([OUTPUT_FLAG, entry.object_path])
            elif not (entry.discards_object and _is_null_target(arguments[i + 1])):
                result.extend([OUTPUT_FLAG, arguments[i + 1]])
            i += 2
            continue

        result.append(arg)
        i += 1

    return result


def reconstruct_compile_entries(build_dir: str, sketch_dir: str) -> List[CompileEntry]:
    """Rebuild compilation database entries from the incremental-build cache.

    Never raises: a missing or unparseable cache yields an empty list, so the
    caller can report "no compilation data available" instead of failing.

    Args:
        build_dir: Build-artifact directory containing includes.cache
        sketch_dir: Project sketch directory (default base directory)

    Returns:
        Reconstructed entries in cache order
    """
    cache_path = os.path.join(build_dir, INCLUDES_CACHE_JSON)
    data, error = read_json_file(cache_path)
    if data is None:
        logger.debug("No usable build cache: %s", error)
        return []
    if not isinstance(data, list):
        logger.warning("Build cache %s is not an array, ignoring", cache_path)
        return []

    base_dir = read_build_options(build_dir) or sketch_dir
    base_dir = resolve_path(sketch_dir, base_dir)

    entries: List[CompileEntry] = []
    for cache_entry in parse_cache_entries(data):
        source = cache_entry.source_path or find_source_argument(cache_entry.arguments)
        if not source:
            logger.debug("Skipping cache entry without a source file: %s", " ".join(cache_entry.arguments[:3]))
            continue

        arguments = rewrite_cache_arguments(cache_entry)
        if not arguments:
            logger.debug("Skipping cache entry with empty arguments for %s", source)
            continue

        entries.append(CompileEntry(directory=base_dir, file=resolve_path(base_dir, source), arguments=tuple(arguments)))

    logger.info("Reconstructed %d entries from %s", len(entries), cache_path)
    return entries
