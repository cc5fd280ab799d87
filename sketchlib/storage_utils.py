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
"""Utilities for reading and atomically writing persisted JSON files."""

import os
import json
import logging
from typing import Any, Optional, Tuple

logger = logging.getLogger(__name__)


def read_json_file(path: str) -> Tuple[Optional[Any], Optional[str]]:
    """Read and parse a JSON file without raising.

    Args:
        path: Path to the JSON file

    Returns:
        Tuple of (data, error). data is None when the file is missing or malformed;
        error holds a human-readable reason in that case.
    """
    if not os.path.exists(path):
        logger.debug("JSON file does not exist: %s", path)
        return None, f"{path} does not exist"

    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f), None
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse %s: %s", path, e)
        return None, f"{path}: {e}"
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read %s: %s", path, e)
        return None, f"{path}: {e}"


def read_text_file(path: str) -> Optional[str]:
    """Read a text file, returning None if it cannot be read."""
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        logger.debug("Failed to read %s: %s", path, e)
        return None


def write_json_atomic(path: str, data: Any) -> None:
    """Write data as indented JSON using an atomic replace.

    Writes to a temp file next to the target and renames it over the target, so
    readers never observe a partially written file. Parent directories are created.

    Args:
        path: Destination path
        data: JSON-serializable data

    Raises:
        OSError: If the directory cannot be created or the file cannot be written
    """
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)

    temp_path = path + ".tmp"
    try:
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.write("\n")
        os.replace(temp_path, path)
        logger.debug("Wrote %s", path)
    except OSError:
        # Clean up temp file if it exists
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError as cleanup_error:
                logger.debug("Failed to remove temp file %s: %s", temp_path, cleanup_error)
        raise
