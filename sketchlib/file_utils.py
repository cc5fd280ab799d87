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
"""File and path utilities for resolving toolchain paths against the project."""

import os
import re
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from sketchlib.constants import SKETCH_EXTENSIONS, SOURCE_EXTENSIONS

logger = logging.getLogger(__name__)

_WINDOWS_DRIVE_ABS_RE = re.compile(r"^[A-Za-z]:[\\/]")
_BARE_DRIVE_RE = re.compile(r"^[A-Za-z]:$")
_DRIVE_SLASHES_RE = re.compile(r"^([A-Za-z]:)/+")
_DUPLICATE_SLASHES_RE = re.compile(r"/{2,}")

# Directories never scanned when indexing project files
_SKIPPED_DIR_NAMES = (".git", ".svn", ".hg", "node_modules", "__pycache__")


def normalize_include_path(path: str) -> str:
    """Normalize a path for include-path and IDE property usage.

    - removes quotes
    - converts backslashes to forward slashes
    - collapses duplicate slashes, keeping a UNC '//' prefix
    - keeps Windows drive letters intact (C:// becomes C:/)

    Args:
        path: Raw path string

    Returns:
        Normalized path string (empty input is returned unchanged)
    """
    if not path:
        return path
    normalized = str(path).strip().replace('"', "").replace("\\", "/")
    normalized = _DRIVE_SLASHES_RE.sub(r"\1/", normalized)
    if normalized.startswith("//"):
        return "//" + _DUPLICATE_SLASHES_RE.sub("/", normalized[2:])
    return _DUPLICATE_SLASHES_RE.sub("/", normalized)


def is_absolute_path(path: str) -> bool:
    """Check if a path is absolute on any supported platform.

    POSIX roots, Windows drive paths (C:\\ or C:/) and UNC paths all count, so
    toolchain output produced on one platform can be classified on another.
    """
    if not path:
        return False
    return path.startswith("/") or path.startswith("\\") or bool(_WINDOWS_DRIVE_ABS_RE.match(path)) or os.path.isabs(path)


def is_bare_drive(path: str) -> bool:
    """Check if a path is only a drive letter such as 'C:'."""
    return bool(_BARE_DRIVE_RE.match(path.strip()))


def resolve_path(base_dir: str, path: str) -> str:
    """Resolve a possibly relative path against a base directory.

    Args:
        base_dir: Directory used for relative paths
        path: Path to resolve

    Returns:
        Absolute, normalized path (absolute inputs are only normalized)
    """
    if is_absolute_path(path):
        if _WINDOWS_DRIVE_ABS_RE.match(path) and os.sep == "/":
            # Foreign drive path: keep it verbatim apart from separators
            return normalize_include_path(path)
        return os.path.normpath(path)
    return os.path.normpath(os.path.join(base_dir or os.getcwd(), path))


def path_key(path: str) -> str:
    """Return a comparison key for a path (case-folded where the platform is case-insensitive)."""
    return os.path.normcase(os.path.normpath(path))


def is_under(path: str, root: str) -> bool:
    """Check if path equals root or lies below it."""
    path_k = path_key(path)
    root_k = path_key(root)
    if path_k == root_k:
        return True
    return path_k.startswith(root_k.rstrip(os.sep) + os.sep)


def is_source_file(path: str) -> bool:
    """Check if a path has a recognized translation unit extension.

    Args:
        path: File path or argument token

    Returns:
        True if the path ends with one of SOURCE_EXTENSIONS
    """
    return any(path.endswith(ext) for ext in SOURCE_EXTENSIONS)


def sketch_name_for_generated(path: str) -> Optional[str]:
    """Map a toolchain-generated sketch translation unit back to its sketch file name.

    The toolchain compiles 'Blink.ino' as 'Blink.ino.cpp' inside the build directory.

    Args:
        path: Generated file path

    Returns:
        Base name of the originating sketch file, or None if path is not generated from one
    """
    basename = os.path.basename(path)
    if not basename.endswith(".cpp"):
        return None
    stem = basename[: -len(".cpp")]
    if any(stem.endswith(ext) for ext in SKETCH_EXTENSIONS):
        return stem
    return None


@dataclass
class ProjectBoundary:
    """Set of root directories whose files belong to the user's project.

    Attributes:
        roots: Absolute project root directories
    """

    roots: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.roots = [os.path.normpath(os.path.abspath(root)) for root in self.roots if root]

    def contains(self, path: str) -> bool:
        """Check if an absolute path lies under any project root."""
        return any(is_under(path, root) for root in self.roots)


@dataclass
class ProjectFileIndex:
    """Base-name lookup table for project files.

    Built by the caller once per merge and passed to the merger, so repeated
    lookups during one merge do not rescan the workspace.

    Attributes:
        by_name: Mapping of case-folded base name to the first matching absolute path
    """

    by_name: Dict[str, str] = field(default_factory=dict)

    @staticmethod
    def build(boundary: ProjectBoundary, exclude_dirs: Iterable[str] = ()) -> "ProjectFileIndex":
        """Scan the project roots and index files by base name.

        Args:
            boundary: Project boundary whose roots are scanned
            exclude_dirs: Directories to skip (e.g. the build directory when it lives in the project)

        Returns:
            ProjectFileIndex with deterministic (sorted walk order) first-match entries
        """
        excluded = [path_key(os.path.abspath(d)) for d in exclude_dirs if d]
        by_name: Dict[str, str] = {}
        for root in boundary.roots:
            if not os.path.isdir(root):
                logger.debug("Project root does not exist, skipping: %s", root)
                continue
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames[:] = sorted(d for d in dirnames if d not in _SKIPPED_DIR_NAMES and not d.startswith(".") and path_key(os.path.join(dirpath, d)) not in excluded)
                for filename in sorted(filenames):
                    by_name.setdefault(os.path.normcase(filename), os.path.join(dirpath, filename))
        logger.debug("Indexed %d project files", len(by_name))
        return ProjectFileIndex(by_name=by_name)

    def lookup(self, basename: str) -> Optional[str]:
        """Find a project file by base name."""
        return self.by_name.get(os.path.normcase(basename))


def retarget_to_project(path: str, build_dir: str, file_index: ProjectFileIndex) -> Tuple[str, bool]:
    """Retarget a toolchain-generated file inside the build directory to its project origin.

    Args:
        path: Absolute file path
        build_dir: Build-artifact directory of the current build
        file_index: Base-name lookup table of project files

    Returns:
        Tuple of (path, retargeted) where path is the project file when a match was found
    """
    if not build_dir or not is_under(path, build_dir):
        return path, False

    candidates = []
    sketch_name = sketch_name_for_generated(path)
    if sketch_name:
        candidates.append(sketch_name)
    candidates.append(os.path.basename(path))

    for name in candidates:
        found = file_index.lookup(name)
        if found:
            logger.debug("Retargeted %s -> %s", path, found)
            return found, True
    return path, False
