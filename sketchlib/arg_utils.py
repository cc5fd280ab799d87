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
"""Tokenizing and normalizing compiler arguments from compilation database entries.

The toolchain writes compile invocations either as a single shell-quoted string
or as an argument array, frequently with @response files and GCC prefix include
flags (-iprefix with -iwithprefixbefore or -iwithprefix) that IDE indexers do
not understand. This module turns both forms into one canonical token list:

1. Tokenize (command strings only)
2. Expand @response files in place
3. Rewrite -iprefix runs into plain -I and -idirafter flags
4. Resolve relative include directories against the entry's directory
5. Inject the implicit sketch header (-include Arduino.h) after the executable

Every step builds a new list from the old one; normalization is idempotent.
"""

import os
import logging
from typing import List, Optional, Sequence, Tuple

from sketchlib.constants import IMPLICIT_HEADER, INCLUDE_PATH_FLAGS, MAX_RESPONSE_FILE_DEPTH
from sketchlib.compdb_types import CompileEntry
from sketchlib.file_utils import is_absolute_path, path_key, resolve_path
from sketchlib.storage_utils import read_text_file

logger = logging.getLogger(__name__)

__all__ = [
    "tokenize_command",
    "quote_argument",
    "stringify_arguments",
    "expand_response_files",
    "normalize_prefix_includes",
    "resolve_include_flags",
    "has_implicit_include",
    "ensure_implicit_include",
    "normalize_arguments",
    "normalize_entry",
]

PREFIX_FLAG = "-iprefix"
WITH_PREFIX_BEFORE_FLAG = "-iwithprefixbefore"
WITH_PREFIX_FLAG = "-iwithprefix"
FORCE_INCLUDE_FLAG = "-include"

_QUOTE_TRIGGERS = ('"', "'")


def tokenize_command(command: str) -> List[str]:
    """Split a command string into argument tokens using shell-like quoting.

    A token is a run of adjacent segments, each of which is:
    - a double-quoted run, where only \\" and \\\\ are escapes
    - a single-quoted run, taken literally
    - a run of non-whitespace, non-quote characters; backslashes are literal
      unless they precede a double quote, where \\" is a literal quote and
      each \\\\ pair before it is one backslash

    Unterminated quotes extend to the end of the string.

    Args:
        command: Command string

    Returns:
        List of tokens

    Examples:
        >>> tokenize_command('g++ -DNAME="a b" "C:\\\\dir\\\\x.cpp"')
        ['g++', '-DNAME=a b', 'C:\\\\dir\\\\x.cpp']
    """
    tokens: List[str] = []
    current: List[str] = []
    in_token = False
    i = 0
    length = len(command)

    while i < length:
        ch = command[i]

        if ch.isspace():
            if in_token:
                tokens.append("".join(current))
                current = []
                in_token = False
            i += 1
            continue

        in_token = True

        if ch == '"':
            i += 1
            while i < length and command[i] != '"':
                if command[i] == "\\" and i + 1 < length and command[i + 1] in ('"', "\\"):
                    current.append(command[i + 1])
                    i += 2
                    continue
                current.append(command[i])
                i += 1
            i += 1  # Closing quote
            continue

        if ch == "\\":
            run_end = i
            while run_end < length and command[run_end] == "\\":
                run_end += 1
            run = run_end - i
            if run_end < length and command[run_end] == '"':
                # Backslashes before a quote pair up; an odd one escapes the quote
                current.append("\\" * (run // 2))
                if run % 2:
                    current.append('"')
                    run_end += 1
                i = run_end
                continue
            current.append("\\" * run)
            i = run_end
            continue

        if ch == "'":
            end = command.find("'", i + 1)
            if end < 0:
                end = length
            current.append(command[i + 1 : end])
            i = end + 1
            continue

        current.append(ch)
        i += 1

    if in_token:
        tokens.append("".join(current))

    return tokens


def quote_argument(arg: str) -> str:
    """Quote a single token for a command string when needed.

    Tokens containing whitespace or quote characters are wrapped in double
    quotes with embedded '"' and '\\' escaped. Other tokens are returned as-is.
    """
    if arg == "":
        return '""'
    if any(c.isspace() for c in arg) or any(q in arg for q in _QUOTE_TRIGGERS):
        return '"' + arg.replace("\\", "\\\\").replace('"', '\\"') + '"'
    return arg


def stringify_arguments(arguments: Sequence[str]) -> str:
    """Serialize tokens back into a command string understood by tokenize_command."""
    return " ".join(quote_argument(arg) for arg in arguments)


def expand_response_files(tokens: Sequence[str], base_dir: str = "", _active: Tuple[str, ...] = ()) -> List[str]:
    """Replace @file tokens by the tokens stored in the referenced file.

    Expansion is recursive. A file that cannot be read leaves its token in place;
    a file that is already being expanded (a reference cycle) is not followed.

    Args:
        tokens: Argument tokens
        base_dir: Directory used to resolve relative @file paths

    Returns:
        New list with all readable references expanded
    """
    expanded: List[str] = []
    for token in tokens:
        if not token.startswith("@") or len(token) == 1:
            expanded.append(token)
            continue

        ref_path = resolve_path(base_dir, token[1:])
        ref_key = path_key(ref_path)
        if ref_key in _active or len(_active) >= MAX_RESPONSE_FILE_DEPTH:
            logger.debug("Not following response file %s (cycle or depth limit)", ref_path)
            expanded.append(token)
            continue

        content = read_text_file(ref_path)
        if content is None:
            logger.debug("Response file not readable, keeping token: %s", token)
            expanded.append(token)
            continue

        nested = tokenize_command(content)
        expanded.extend(expand_response_files(nested, base_dir, _active + (ref_key,)))

    return expanded


def _match_flag(tokens: Sequence[str], index: int, flag: str) -> Tuple[Optional[str], int]:
    """Match a flag that takes a value in separate, '=' or fused form.

    Args:
        tokens: Argument tokens
        index: Position of the candidate token
        flag: Flag name (e.g. '-iprefix')

    Returns:
        Tuple of (value, consumed_tokens); value is None when the token is not this flag
    """
    token = tokens[index]
    if token == flag:
        if index + 1 < len(tokens):
            return tokens[index + 1], 2
        return None, 0
    if token.startswith(flag + "="):
        return token[len(flag) + 1 :], 1
    if token.startswith(flag) and len(token) > len(flag):
        return token[len(flag) :], 1
    return None, 0


def _join_prefix(prefix: str, suffix: str) -> str:
    """Join an include prefix and suffix, keeping the prefix's separator style."""
    if prefix.endswith(("/", "\\")) or suffix.startswith(("/", "\\")):
        return prefix + suffix
    separator = "\\" if "\\" in prefix and "/" not in prefix else "/"
    return prefix + separator + suffix


def normalize_prefix_includes(tokens: Sequence[str], base_dir: str = "") -> List[str]:
    """Rewrite -iprefix runs into canonical -I and -idirafter flags.

    Each -iprefix (separate, '=' or fused form) is removed and sets the prefix for
    the -iwithprefixbefore and -iwithprefix flags that immediately follow it. They
    are rewritten to single '-I<prefix><sep><suffix>' and
    '-idirafter<prefix><sep><suffix>' tokens, matching where GCC searches them.
    @file references inside the run are expanded; the prefix stops applying at
    the first other token.

    Args:
        tokens: Argument tokens
        base_dir: Directory used to resolve relative prefixes and @file paths

    Returns:
        New list of tokens

    Examples:
        >>> normalize_prefix_includes(["-iprefix", "/opt/sdk", "-iwithprefixbefore", "include"])
        ['-I/opt/sdk/include']
    """
    pending = list(tokens)
    result: List[str] = []
    prefix: Optional[str] = None
    i = 0

    while i < len(pending):
        prefix_value, consumed = _match_flag(pending, i, PREFIX_FLAG)
        if prefix_value is not None:
            prefix = prefix_value
            if base_dir and not is_absolute_path(prefix):
                trailing = prefix[-1] if prefix.endswith(("/", "\\")) else ""
                prefix = resolve_path(base_dir, prefix) + trailing
            i += consumed
            continue

        if prefix is not None:
            token = pending[i]
            if token.startswith("@") and len(token) > 1:
                expanded = expand_response_files([token], base_dir)
                if expanded != [token]:
                    # Splice the file contents in and keep scanning them
                    pending = pending[:i] + expanded + pending[i + 1 :]
                    continue

            suffix, consumed = _match_flag(pending, i, WITH_PREFIX_BEFORE_FLAG)
            if suffix is not None:
                result.append("-I" + _join_prefix(prefix, suffix))
                i += consumed
                continue

            # Checked after -iwithprefixbefore, whose fused form shares this prefix
            suffix, consumed = _match_flag(pending, i, WITH_PREFIX_FLAG)
            if suffix is not None:
                result.append("-idirafter" + _join_prefix(prefix, suffix))
                i += consumed
                continue

            prefix = None

        result.append(pending[i])
        i += 1

    return result


def resolve_include_flags(tokens: Sequence[str], base_dir: str) -> List[str]:
    """Resolve relative include directories against base_dir.

    Handles -I, -isystem, -iquote and -idirafter in separate and fused form.
    Values starting with '=' (sysroot-relative) are left untouched.

    Args:
        tokens: Argument tokens
        base_dir: Directory the compiler ran in

    Returns:
        New list of tokens with absolute include directories
    """
    if not base_dir:
        return list(tokens)

    def _resolve(value: str) -> str:
        if not value or value.startswith("=") or is_absolute_path(value):
            return value
        return resolve_path(base_dir, value)

    result: List[str] = []
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token in INCLUDE_PATH_FLAGS and i + 1 < len(tokens):
            result.append(token)
            result.append(_resolve(tokens[i + 1]))
            i += 2
            continue

        for flag in INCLUDE_PATH_FLAGS:
            if token.startswith(flag) and len(token) > len(flag):
                result.append(flag + _resolve(token[len(flag) :]))
                break
        else:
            result.append(token)
        i += 1

    return result


def has_implicit_include(tokens: Sequence[str], header: str = IMPLICIT_HEADER) -> bool:
    """Check if an '-include <header>' pair (or fused '-include<header>') is present.

    A value matches when it equals the header or ends with it as a path component.
    """

    def _matches(value: str) -> bool:
        return value == header or os.path.basename(value.replace("\\", "/")) == header

    for i, token in enumerate(tokens):
        if token == FORCE_INCLUDE_FLAG and i + 1 < len(tokens) and _matches(tokens[i + 1]):
            return True
        if token.startswith(FORCE_INCLUDE_FLAG) and len(token) > len(FORCE_INCLUDE_FLAG) and _matches(token[len(FORCE_INCLUDE_FLAG) :]):
            return True
    return False


def ensure_implicit_include(tokens: Sequence[str], header: str = IMPLICIT_HEADER) -> List[str]:
    """Insert '-include <header>' right after the executable if it is missing.

    Args:
        tokens: Argument tokens (first token is the executable)
        header: Implicit header name

    Returns:
        New list of tokens; the source file token keeps its relative position

    Examples:
        >>> ensure_implicit_include(["gcc", "main.c"])
        ['gcc', '-include', 'Arduino.h', 'main.c']
    """
    if not tokens:
        return []
    if has_implicit_include(tokens, header):
        return list(tokens)
    return [tokens[0], FORCE_INCLUDE_FLAG, header] + list(tokens[1:])


def normalize_arguments(arguments: Sequence[str], base_dir: str = "", implicit_header: str = IMPLICIT_HEADER) -> List[str]:
    """Fully expand and normalize an argument list.

    Args:
        arguments: Argument tokens (first token is the executable)
        base_dir: Directory used to resolve relative paths referenced by flags
        implicit_header: Header injected with -include

    Returns:
        Normalized token list; normalizing the result again returns an equal list
    """
    tokens = expand_response_files(arguments, base_dir)
    tokens = normalize_prefix_includes(tokens, base_dir)
    tokens = resolve_include_flags(tokens, base_dir)
    tokens = ensure_implicit_include(tokens, implicit_header)

    if len(tokens) != len(arguments):
        logger.debug("Normalized %d arguments to %d", len(arguments), len(tokens))
    return tokens


def normalize_entry(entry: CompileEntry, implicit_header: str = IMPLICIT_HEADER) -> CompileEntry:
    """Normalize an entry's arguments using its directory as the base directory.

    Args:
        entry: Entry to normalize
        implicit_header: Header injected with -include

    Returns:
        New CompileEntry; command-form entries also carry the re-serialized command string
    """
    arguments = normalize_arguments(entry.arguments, entry.directory, implicit_header)
    command = stringify_arguments(arguments) if entry.uses_command_form else None
    return CompileEntry(directory=entry.directory, file=entry.file, arguments=tuple(arguments), command=command)
