#!/usr/bin/env python3
"""Check which tools the setup will use and which it would install.

Only curl and bash are required; everything else is installed on demand
or skipped.
"""

import shutil
import sys

from .lib.commands import get_version

REQUIRED = [
    ("bash", "https://www.gnu.org/software/bash/"),
    ("curl", "https://curl.se/download.html"),
]

OPTIONAL = [
    ("node", "installed via nvm when missing"),
    ("npm", "installed via nvm when missing"),
    ("claude", "installed via npm"),
    ("uvx", "installed via Homebrew or the uv installer when MCP servers are requested"),
    ("code", "VS Code extension step is skipped without it"),
]


def check_command(name: str, install_hint: str, required: bool = True) -> bool:
    """Check if a command is available and print its version."""
    path = shutil.which(name)
    if not path:
        marker = "✗" if required else "-"
        print(f"  {marker} {name} - NOT FOUND")
        print(f"    {'Install' if required else 'Note'}: {install_hint}")
        return False

    version = get_version(name)
    if version is None:
        print(f"  ✓ {name} - found at {path}")
        return True

    # Truncate long version strings
    if len(version) > 60:
        version = version[:60] + "..."
    print(f"  ✓ {name} - {version}")
    return True


def main() -> int:
    """Check all prerequisites and return exit code."""
    print("Checking prerequisites...")
    print()

    all_found = True
    for name, install_hint in REQUIRED:
        if not check_command(name, install_hint):
            all_found = False

    print()
    print("Optional tools:")
    for name, hint in OPTIONAL:
        check_command(name, hint, required=False)

    print()

    if all_found:
        print("All prerequisites found!")
        return 0
    else:
        print("Some prerequisites are missing. Please install them and try again.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
