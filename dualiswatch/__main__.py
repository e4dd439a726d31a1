"""
Package entry point.

Allows running the application via:

    python -m dualiswatch

This simply forwards execution to dualiswatch.cli.main().
"""

from dualiswatch.cli import main

if __name__ == "__main__":
    main()
