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
"""Runtime package checks for the sketch-check scripts.

Minimum versions follow Ubuntu 24.04 LTS unless the code needs something newer.
"""

import sys
import logging
import argparse
from typing import Dict, List, Optional, Tuple

# packaging is needed to compare versions at all, so fail early without it
try:
    from importlib.metadata import version, PackageNotFoundError
    from packaging.version import parse
except ImportError as e:
    print(f"Error: sketch-check needs the 'packaging' library ({e}).", file=sys.stderr)
    print("Install with: pip install 'packaging>=24.0'", file=sys.stderr)
    sys.exit(1)

from sketchlib.color_utils import print_error, print_warning, print_success
from sketchlib.constants import EXIT_RUNTIME_ERROR

logger = logging.getLogger(__name__)

PACKAGE_REQUIREMENTS: Dict[str, str] = {
    "packaging": "24.0",
    "colorama": "0.4.6",  # colored output only
}

REQUIRED_PACKAGES = ("packaging",)
OPTIONAL_PACKAGES = ("colorama",)


def _install_hint(package_name: str, min_version: str, upgrade: bool = False) -> str:
    flag = "--upgrade " if upgrade else ""
    return f"pip install {flag}'{package_name}>={min_version}'"


def check_package_version(package_name: str, min_version: Optional[str] = None, raise_on_error: bool = True) -> Tuple[bool, bool, Optional[str]]:
    """Look up an installed distribution and compare it to a minimum version.

    Args:
        package_name: Distribution name on the package index
        min_version: Required minimum; taken from PACKAGE_REQUIREMENTS when None
        raise_on_error: Raise ImportError instead of reporting through the tuple

    Returns:
        (installed, new enough, installed version or None)

    Raises:
        ImportError: raise_on_error is set and the package is missing or too old
        ValueError: No minimum version is known for the package
    """
    required = min_version if min_version is not None else PACKAGE_REQUIREMENTS.get(package_name)
    if required is None:
        raise ValueError(f"No version requirement specified for {package_name}")

    try:
        installed = version(package_name)
    except PackageNotFoundError as exc:
        if raise_on_error:
            raise ImportError(f"{package_name} is not installed. Install with: {_install_hint(package_name, required)}") from exc
        return False, False, None

    new_enough = parse(installed) >= parse(required)
    if not new_enough and raise_on_error:
        raise ImportError(f"{package_name} {installed} is too old (need >={required}). Upgrade with: {_install_hint(package_name, required, upgrade=True)}")
    logger.debug("%s %s (need >=%s)", package_name, installed, required)
    return True, new_enough, installed


def require_package(package_name: str, context: str = "this tool") -> None:
    """Exit with EXIT_RUNTIME_ERROR unless package_name is installed and new enough."""
    required = PACKAGE_REQUIREMENTS.get(package_name)
    if required is None:
        print_error(f"Unknown package '{package_name}' - no version requirement defined")
        sys.exit(EXIT_RUNTIME_ERROR)

    installed, new_enough, installed_version = check_package_version(package_name, required, raise_on_error=False)
    if installed and new_enough:
        return
    if installed:
        print_error(f"{package_name} {installed_version} is too old for {context}.")
        print(f"Upgrade with: {_install_hint(package_name, required, upgrade=True)}", file=sys.stderr)
    else:
        print_error(f"{package_name} is required for {context}.")
        print(f"Install with: {_install_hint(package_name, required)}", file=sys.stderr)
    sys.exit(EXIT_RUNTIME_ERROR)


def _status_line(package_name: str) -> Tuple[bool, str]:
    installed, new_enough, installed_version = check_package_version(package_name, raise_on_error=False)
    if installed and new_enough:
        return True, f"{package_name} {installed_version}"
    if installed:
        return False, f"{package_name} {installed_version} (need >={PACKAGE_REQUIREMENTS[package_name]})"
    return False, f"{package_name} not installed"


def check_all_packages() -> bool:
    """Print one status line per known package.

    Missing optional packages are reported as warnings and do not fail the check.

    Returns:
        True when every required package is usable
    """
    print("sketch-check package verification")
    missing: List[str] = []
    for package_name in REQUIRED_PACKAGES + OPTIONAL_PACKAGES:
        ok, line = _status_line(package_name)
        if ok:
            print_success(f"  {line}")
        elif package_name in OPTIONAL_PACKAGES:
            print_warning(f"  {line} (optional)", prefix=False)
        else:
            print_error(f"  {line}", prefix=False)
            missing.append(package_name)

    if missing:
        print_error("Some required packages are missing or too old", prefix=False)
        print("Install with: " + " ".join(_install_hint(name, PACKAGE_REQUIREMENTS[name]) for name in missing))
        return False
    print_success("All required packages are available")
    return True


def main() -> int:
    parser = argparse.ArgumentParser(description="Verify sketch-check package dependencies")
    parser.add_argument("--check-all", action="store_true", help="Check all known runtime packages")
    args = parser.parse_args()

    if not args.check_all:
        parser.print_help()
        return 0
    return 0 if check_all_packages() else 1


if __name__ == "__main__":
    sys.exit(main())
