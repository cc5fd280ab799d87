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
"""Terminal coloring for sketch-check output.

Colors come from colorama when it is installed. Without it every code is an
empty string, so callers never need to check for colorama themselves.
"""

import os
import sys
import logging
from typing import Dict, Optional, TextIO, Tuple

logger = logging.getLogger(__name__)

try:
    from colorama import Fore, Style, init

    # Keep escape codes when output is piped into the IDE task panel
    init(autoreset=False, strip=False)
    COLORAMA_AVAILABLE = True
except ImportError:
    COLORAMA_AVAILABLE = False
    logger.debug("colorama not available, output will be plain")


def _code(name: str) -> str:
    """Look up a colorama Fore or Style code by name."""
    if not COLORAMA_AVAILABLE:
        return ""
    return getattr(Fore, name, None) or getattr(Style, name)


class Colors:
    """Escape codes used by the sketch-check scripts."""

    RED = _code("RED")
    GREEN = _code("GREEN")
    YELLOW = _code("YELLOW")
    CYAN = _code("CYAN")
    WHITE = _code("WHITE")

    RESET = _code("RESET_ALL")
    BRIGHT = _code("BRIGHT")
    DIM = _code("DIM")
    NORMAL = _code("NORMAL")

    @classmethod
    def disable(cls) -> None:
        """Blank every code so later output is plain text."""
        for name in [attr for attr in vars(cls) if attr.isupper()]:
            setattr(cls, name, "")


def colored(text: str, color: str = "", style: str = "") -> str:
    """Wrap text in a color and style, resetting afterwards.

    Text is returned unchanged when both codes are empty.
    """
    if not (color or style):
        return text
    return f"{style}{color}{text}{Colors.RESET}"


# Message kind -> (label, default stream is stderr)
_MESSAGE_KINDS: Dict[str, Tuple[str, bool]] = {
    "success": ("Success", False),
    "error": ("Error", True),
    "warning": ("Warning", True),
    "info": ("", False),
}


def _emit(kind: str, color: str, text: str, file: Optional[TextIO], prefix: bool) -> None:
    label, to_stderr = _MESSAGE_KINDS[kind]
    if file is None:
        file = sys.stderr if to_stderr else sys.stdout
    if prefix and label:
        text = f"{label}: {text}"
    print(colored(text, color), file=file)


def print_success(text: str, file: Optional[TextIO] = None, prefix: bool = False) -> None:
    """Print a green message to stdout (or file)."""
    _emit("success", Colors.GREEN, text, file, prefix)


def print_error(text: str, file: Optional[TextIO] = None, prefix: bool = True) -> None:
    """Print a red message to stderr (or file), labelled "Error:" unless prefix is False."""
    _emit("error", Colors.RED, text, file, prefix)


def print_warning(text: str, file: Optional[TextIO] = None, prefix: bool = True) -> None:
    """Print a yellow message to stderr (or file), labelled "Warning:" unless prefix is False."""
    _emit("warning", Colors.YELLOW, text, file, prefix)


def print_info(text: str, file: Optional[TextIO] = None) -> None:
    _emit("info", Colors.CYAN, text, file, False)


def should_use_color(force_color: bool = False, no_color: bool = False, stream: Optional[TextIO] = None) -> bool:
    """Decide whether output written to stream should carry escape codes.

    Args:
        force_color: Color even when stream is not a terminal
        no_color: Never color (wins over force_color)
        stream: Stream that will receive the output (default: sys.stdout)

    Returns:
        True if colorama is available and coloring is wanted
    """
    if no_color or os.environ.get("NO_COLOR"):
        return False
    if not COLORAMA_AVAILABLE:
        return False
    if force_color:
        return True
    stream = sys.stdout if stream is None else stream
    return bool(getattr(stream, "isatty", lambda: False)())


def get_diagnostic_color(severity: str) -> Tuple[str, str]:
    """Return (color, style) for a diagnostic severity such as 'Error' or 'Warning'."""
    severity = severity.lower()
    if severity == "error":
        return Colors.RED, Colors.BRIGHT
    if severity == "warning":
        return Colors.YELLOW, Colors.NORMAL
    return Colors.WHITE, Colors.NORMAL


def format_diagnostic(path: str, line: int, column: int, severity: str, message: str) -> str:
    """Format one diagnostic the way gcc prints it: 'path:line:column: severity: message'."""
    color, style = get_diagnostic_color(severity)
    location = colored(f"{path}:{line}:{column}:", Colors.WHITE, Colors.BRIGHT)
    return f"{location} {colored(severity.lower() + ':', color, style)} {message}"
