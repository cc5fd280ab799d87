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
"""Reconciliation of toolchain build artifacts into the consolidated compilation database.

The consolidated database lives at a fixed location in the project
(.vscode/compile_commands.json) and survives across builds. After every build:

1. The build artifact is classified once: compile_commands.json (primary),
   includes.cache (fallback reconstruction) or nothing.
2. Entries are resolved to project files; toolchain-generated copies inside the
   build directory (e.g. Blink.ino.cpp) are retargeted to their project origin.
3. Entries are normalized and stored as (file's directory, base name).
4. Fresh entries insert-or-replace existing ones by key; untouched existing
   entries survive only while they still resolve to project files.
5. The result is written back atomically.

A partially failed build never erases previously good entries: only files that
no longer belong to the project are dropped.
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from sketchlib.constants import COMPILE_COMMANDS_JSON, IMPLICIT_HEADER, INCLUDES_CACHE_JSON, NO_ARTIFACT, DatabaseWriteError
from sketchlib.compdb_types import AbsentArtifact, BuildArtifact, CacheArtifact, CompileEntry, PrimaryArtifact
from sketchlib.arg_utils import normalize_entry, stringify_arguments
from sketchlib.build_cache_parser import reconstruct_compile_entries
from sketchlib.file_utils import ProjectBoundary, ProjectFileIndex, is_source_file, is_under, path_key, resolve_path, retarget_to_project
from sketchlib.storage_utils import read_json_file, write_json_atomic

logger = logging.getLogger(__name__)

__all__ = ["MergeResult", "read_build_artifact", "load_consolidated_database", "merge_compile_database"]

SOURCE_PRIMARY = "primary"
SOURCE_CACHE = "cache"
SOURCE_NONE = "none"

EntryKey = Tuple[str, str]


@dataclass
class MergeResult:
    """Outcome of one merge.

    Attributes:
        count: Fresh entries merged; NO_ARTIFACT (-1) when no build artifact was found at all
        source: Where fresh entries came from ('primary', 'cache' or 'none')
        entries: Consolidated database contents after the merge
        database_path: Where the database is persisted
        warnings: Parse errors and other non-fatal problems surfaced to the caller
        discarded: Fresh entries discarded because they are not project files
        kept_existing: Existing entries carried over untouched
        dropped_existing: Existing entries dropped because they no longer resolve to project files
        written: True once the database was persisted
    """

    count: int
    source: str
    database_path: str
    entries: List[CompileEntry] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    discarded: int = 0
    kept_existing: int = 0
    dropped_existing: int = 0
    written: bool = False

    @property
    def has_artifact(self) -> bool:
        return self.count != NO_ARTIFACT


def _parse_entries(data: Sequence[object], origin: str) -> Tuple[List[CompileEntry], int]:
    """Parse compile_commands.json elements, skipping malformed ones."""
    entries: List[CompileEntry] = []
    skipped = 0
    for index, element in enumerate(data):
        try:
            entries.append(CompileEntry.from_json(element))
        except ValueError as e:
            skipped += 1
            logger.debug("Skipping entry %d in %s: %s", index, origin, e)
    if skipped:
        logger.warning("Skipped %d malformed entries in %s", skipped, origin)
    return entries, skipped


def read_build_artifact(build_dir: str, sketch_dir: str) -> BuildArtifact:
    """Classify and parse whatever compilation data the build produced.

    Args:
        build_dir: Build-artifact directory
        sketch_dir: Project sketch directory (base directory for reconstruction)

    Returns:
        PrimaryArtifact when compile_commands.json is a JSON array (possibly empty),
        CacheArtifact when entries were reconstructed from includes.cache,
        AbsentArtifact otherwise
    """
    primary_path = os.path.join(build_dir, COMPILE_COMMANDS_JSON)
    data, error = read_json_file(primary_path)
    if data is not None and not isinstance(data, list):
        error = f"{primary_path}: expected a JSON array, got {type(data).__name__}"
        logger.warning("%s", error)
        data = None

    if isinstance(data, list):
        entries, skipped = _parse_entries(data, primary_path)
        return PrimaryArtifact(path=primary_path, entries=entries, skipped=skipped)

    primary_error = error or f"{primary_path} is unusable"
    entries = reconstruct_compile_entries(build_dir, sketch_dir)
    if entries:
        logger.info("Using %d entries reconstructed from %s", len(entries), INCLUDES_CACHE_JSON)
        return CacheArtifact(path=os.path.join(build_dir, INCLUDES_CACHE_JSON), entries=entries, primary_error=primary_error)

    return AbsentArtifact(reason=f"{primary_error}; no entries in {INCLUDES_CACHE_JSON}")


def load_consolidated_database(database_path: str) -> Tuple[List[CompileEntry], Optional[str]]:
    """Load the persisted consolidated database.

    Args:
        database_path: Path of the consolidated database

    Returns:
        Tuple of (entries, error); entries is empty when the file is absent or corrupt
    """
    data, error = read_json_file(database_path)
    if data is None:
        return [], error
    if not isinstance(data, list):
        return [], f"{database_path}: expected a JSON array"
    entries, _ = _parse_entries(data, database_path)
    return entries, None


def _replace_source_argument(arguments: Sequence[str], directory: str, original: str, target: str) -> List[str]:
    """Point the first source token that resolves to `original` at `target`."""
    original_key = path_key(original)
    result: List[str] = []
    replaced = False
    for arg in arguments:
        if not replaced and not arg.startswith("-") and is_source_file(arg) and path_key(resolve_path(directory, arg)) == original_key:
            result.append(target)
            replaced = True
        else:
            result.append(arg)
    return result


def _resolve_project_file(entry: CompileEntry, build_dir: str, boundary: ProjectBoundary, file_index: ProjectFileIndex) -> Optional[Tuple[str, str]]:
    """Resolve an entry to a project-owned file.

    Returns:
        Tuple of (resolved_path, project_path), or None when the entry is not a project file
    """
    resolved = entry.resolved_file()
    target, _ = retarget_to_project(resolved, build_dir, file_index)
    if build_dir and is_under(target, build_dir):
        # Generated in the build directory with no project counterpart
        return None
    if not boundary.contains(target):
        return None
    return resolved, target


def _to_storage_form(entry: CompileEntry, arguments: Sequence[str], resolved: str, target: str) -> CompileEntry:
    """Store an entry as (directory of the file, base name) with its source token retargeted."""
    final_arguments = _replace_source_argument(arguments, entry.directory, resolved, target)
    command = stringify_arguments(final_arguments) if entry.uses_command_form else None
    return CompileEntry(directory=os.path.dirname(target), file=os.path.basename(target), arguments=tuple(final_arguments), command=command)


def merge_compile_database(
    build_dir: str,
    boundary: ProjectBoundary,
    database_path: str,
    sketch_dir: str = "",
    file_index: Optional[ProjectFileIndex] = None,
    implicit_header: str = IMPLICIT_HEADER,
) -> MergeResult:
    """Merge the current build's compilation data into the consolidated database.

    Args:
        build_dir: Build-artifact directory of the completed build
        boundary: Project boundary deciding which files belong to the project
        database_path: Path of the consolidated database (may not exist yet)
        sketch_dir: Project sketch directory (default: first project root)
        file_index: Base-name lookup table of project files; built for this call when omitted
        implicit_header: Header injected into every entry

    Returns:
        MergeResult; result.count is NO_ARTIFACT when neither artifact yielded entries

    Raises:
        DatabaseWriteError: If the merged database cannot be written back
    """
    build_dir = os.path.abspath(build_dir)
    if not sketch_dir:
        sketch_dir = boundary.roots[0] if boundary.roots else build_dir

    artifact = read_build_artifact(build_dir, sketch_dir)
    if isinstance(artifact, AbsentArtifact):
        logger.info("No compilation data available: %s", artifact.reason)
        return MergeResult(count=NO_ARTIFACT, source=SOURCE_NONE, database_path=database_path, warnings=[artifact.reason])

    result = MergeResult(count=0, source=SOURCE_PRIMARY if isinstance(artifact, PrimaryArtifact) else SOURCE_CACHE, database_path=database_path)
    if isinstance(artifact, CacheArtifact):
        result.warnings.append(artifact.primary_error)
    elif artifact.skipped:
        result.warnings.append(f"{artifact.path}: skipped {artifact.skipped} malformed entries")

    if file_index is None:
        file_index = ProjectFileIndex.build(boundary, exclude_dirs=[build_dir])

    # Fresh entries, insert-or-replace by key in artifact order
    fresh: Dict[EntryKey, CompileEntry] = {}
    for entry in artifact.entries:
        resolved_pair = _resolve_project_file(entry, build_dir, boundary, file_index)
        if resolved_pair is None:
            result.discarded += 1
            logger.debug("Discarding non-project entry: %s", entry.resolved_file())
            continue
        resolved, target = resolved_pair
        normalized = normalize_entry(entry, implicit_header)
        stored = _to_storage_form(entry, normalized.arguments, resolved, target)
        fresh[stored.key()] = stored
    result.count = len(fresh)

    existing, load_error = load_consolidated_database(database_path)
    if load_error and os.path.exists(database_path):
        logger.warning("Ignoring unreadable consolidated database: %s", load_error)
        result.warnings.append(load_error)

    merged: List[CompileEntry] = []
    seen: set = set()
    for entry in existing:
        resolved_pair = _resolve_project_file(entry, build_dir, boundary, file_index)
        if resolved_pair is None:
            result.dropped_existing += 1
            continue
        resolved, target = resolved_pair
        candidate = _to_storage_form(entry, entry.arguments, resolved, target)
        key = candidate.key()
        if key in seen:
            continue
        if key in fresh:
            seen.add(key)
            merged.append(fresh[key])
            continue
        if not os.path.isfile(target):
            logger.debug("Dropping entry for deleted file: %s", target)
            result.dropped_existing += 1
            continue
        seen.add(key)
        merged.append(candidate)
        result.kept_existing += 1

    for key, entry in fresh.items():
        if key not in seen:
            seen.add(key)
            merged.append(entry)

    result.entries = merged
    logger.info(
        "Merged %d fresh entries (%s), kept %d existing, dropped %d existing, discarded %d",
        result.count,
        result.source,
        result.kept_existing,
        result.dropped_existing,
        result.discarded,
    )

    try:
        write_json_atomic(database_path, [entry.to_json() for entry in merged])
    except OSError as e:
        raise DatabaseWriteError(f"Cannot write compilation database {database_path}: {e}", result) from e
    result.written = True
    return result
