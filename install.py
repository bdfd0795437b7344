#!/usr/bin/env python3
"""
ArchPI - Arch Linux Post-Installation
Run straight from a checkout: installs the Python dependencies with pacman
when they are missing, then starts the interactive setup.
"""

import os
import subprocess
import sys


# --- Bootstrapping Dependencies ---
def bootstrap_dependencies():
    """Ensure required Python packages are installed."""
    required = {"rich": "python-rich", "yaml": "python-yaml"}
    missing = []

    for module, package in required.items():
        try:
            __import__(module)
        except ImportError:
            missing.append(package)

    if missing:
        print(f"Installing missing dependencies: {', '.join(missing)}...")
        try:
            subprocess.run(
                ["sudo", "pacman", "-S", "--noconfirm", "--needed"] + missing,
                check=True,
            )
            print("Dependencies installed. Restarting script...")
            os.execv(sys.executable, [sys.executable] + sys.argv)
        except subprocess.CalledProcessError:
            print(
                f"Failed to install dependencies. Please run: sudo pacman -S {' '.join(missing)}"
            )
            sys.exit(1)


if __name__ == "__main__":
    bootstrap_dependencies()

    from archpi.cli import main

    sys.exit(main())
