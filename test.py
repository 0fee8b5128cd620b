#!/usr/bin/env python3
"""
shrinkray Test Runner
Easy way to run all tests with various options.

Usage:
    python test.py           # Run all tests
    python test.py quick     # Skip tests that need a real ffmpeg
    python test.py verbose   # Run with verbose output
    python test.py failed    # Re-run only failed tests
    python test.py planner   # Test specific module (tests/test_planner.py)
"""

import sys
import subprocess
import os


def main():
    project_dir = os.path.dirname(os.path.abspath(__file__))
    os.chdir(project_dir)

    cmd = [sys.executable, "-m", "pytest", "tests/"]

    args = sys.argv[1:] if len(sys.argv) > 1 else []

    if not args:
        cmd.extend(["-v", "--tb=short"])
        print("[TEST] Running all tests...\n")

    elif "quick" in args:
        cmd.extend(["-v", "--tb=short", "-m", "not requires_ffmpeg and not slow"])
        print("[QUICK] Running tests without ffmpeg...\n")

    elif "verbose" in args:
        cmd.extend(["-v", "-s", "--tb=long"])
        print("[VERBOSE] Running tests with verbose output...\n")

    elif "failed" in args:
        cmd.extend(["--lf", "-v"])
        print("[RETRY] Re-running failed tests...\n")

    else:
        module = args[0]
        test_file = f"tests/test_{module}.py"
        if os.path.exists(test_file):
            cmd = [sys.executable, "-m", "pytest", test_file, "-v", "--tb=short"]
            print(f"[MODULE] Running tests for {module}...\n")
        else:
            cmd.extend(["-v", "--tb=short", "-k", module])
            print(f"[FILTER] Running tests matching '{module}'...\n")

    try:
        result = subprocess.run(cmd)

        print("\n" + "=" * 60)
        if result.returncode == 0:
            print("[PASS] All tests passed!")
        else:
            print(f"[FAIL] Tests failed (exit code: {result.returncode})")
        print("=" * 60)

        return result.returncode

    except KeyboardInterrupt:
        print("\n\n[ABORT] Tests interrupted by user")
        return 1


if __name__ == "__main__":
    sys.exit(main())
