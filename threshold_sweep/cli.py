"""CLI entry point for threshold-sweep package."""

import sys


def main_sweep():
    """Entry point for threshold-sweep command."""
    from threshold_sweep.core.main import main
    sys.exit(main())


if __name__ == "__main__":
    main_sweep()
