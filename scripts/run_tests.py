#!/usr/bin/env python
"""
Test runner for the wacli unit tests.

Usage:
    python scripts/run_tests.py            # everything
    python scripts/run_tests.py server     # tests/test_server.py
    python scripts/run_tests.py -k ping    # extra args go to pytest
"""

import os
import subprocess
import sys
from pathlib import Path


def run_tests(test_module="", extra_args=None, verbose=True):
    """
    Run pytest over tests/ or a single test module.

    Args:
        test_module: File name under tests/ (default: the whole directory)
        extra_args: Additional pytest arguments
        verbose: Whether to run with verbose output
    """
    project_root = Path(__file__).resolve().parent.parent
    os.chdir(project_root)

    target = f"tests/{test_module}" if test_module else "tests/"
    cmd = [sys.executable, "-m", "pytest", target, "--tb=short"]
    if verbose:
        cmd.append("-v")
    cmd.extend(extra_args or [])

    print(f"Running: {' '.join(cmd)}")
    print("=" * 60)

    try:
        result = subprocess.run(cmd, check=False)
    except FileNotFoundError:
        print("Error: pytest not found. Install with: pip install -e '.[tests]'")
        return False
    return result.returncode == 0


def main():
    args = sys.argv[1:]
    test_module = ""
    if args and not args[0].startswith("-"):
        test_module = args.pop(0)
        if not test_module.startswith("test_"):
            test_module = f"test_{test_module}"
        if not test_module.endswith(".py"):
            test_module = f"{test_module}.py"

    if not run_tests(test_module, extra_args=args):
        print("\nSome tests failed")
        sys.exit(1)
    print("\nAll tests passed")


if __name__ == "__main__":
    main()
