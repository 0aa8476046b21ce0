#!/usr/bin/env python3
"""
Test runner script for pipeline-core.

Wraps pytest with the unit/integration split used in tests/ and optional
coverage reporting.
"""
import argparse
import subprocess
import sys
from pathlib import Path


def run_command(cmd: list, description: str) -> bool:
    """Run a command and return success status."""
    print(f"\n{'='*60}")
    print(f"Running: {description}")
    print(f"Command: {' '.join(cmd)}")
    print('='*60)

    try:
        subprocess.run(cmd, check=True, capture_output=False)
        print(f"✅ {description} completed successfully")
        return True
    except subprocess.CalledProcessError as e:
        print(f"❌ {description} failed with exit code {e.returncode}")
        return False
    except FileNotFoundError:
        print(f"❌ Command not found: {cmd[0]}")
        return False


def build_pytest_command(args) -> list:
    cmd = [sys.executable, "-m", "pytest", "-v" if args.verbose else "-q"]

    if args.coverage:
        cmd.extend(["--cov=pipeline_core", "--cov-report=term-missing"])
        if args.html:
            cmd.append("--cov-report=html:htmlcov")

    if args.keyword:
        cmd.extend(["-k", args.keyword])

    if args.type == "unit":
        cmd.extend(["-m", "unit", "tests/unit"])
    elif args.type == "integration":
        cmd.extend(["-m", "integration", "tests/integration"])
    else:
        if not args.slow:
            cmd.extend(["-m", "not slow"])
        cmd.append("tests/")
    return cmd


def main():
    parser = argparse.ArgumentParser(description="Run tests for pipeline-core")
    parser.add_argument(
        "--type",
        choices=["unit", "integration", "all"],
        default="all",
        help="Type of tests to run"
    )
    parser.add_argument("--coverage", action="store_true", help="Run with coverage reporting")
    parser.add_argument("--html", action="store_true", help="Generate HTML coverage report")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--slow", action="store_true", help="Include slow tests")
    parser.add_argument("--keyword", "-k", help="Only run tests matching this expression")
    parser.add_argument("--install", action="store_true", help="Install the package with its test extra first")

    args = parser.parse_args()
    script_dir = Path(__file__).parent

    if args.install:
        if not run_command(
            [sys.executable, "-m", "pip", "install", "-e", f"{script_dir}[test]"],
            "Installing pipeline-core with test extra"
        ):
            return 1

    success = run_command(build_pytest_command(args), f"Running {args.type} tests")

    print("\n" + "="*60)
    if success:
        print("🎉 All tests completed successfully!")
        if args.coverage and args.html:
            print("📊 Coverage report generated in htmlcov/index.html")
    else:
        print("💥 Some tests failed. Check the output above for details.")
    print("="*60)

    return 0 if success else 1


if __name__ == "__main__":
    sys.exit(main())
