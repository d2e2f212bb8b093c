"""CLI entry point for autoposter.cli module.

Enables execution via: python -m autoposter.cli <command>
"""

from autoposter.cli.main import main

if __name__ == "__main__":
    raise SystemExit(main())
