"""
Package entry point.

Allows running the application via:

    python -m examplanner

This simply forwards execution to examplanner.cli.main().
"""

from examplanner.cli import main

if __name__ == "__main__":
    main()
