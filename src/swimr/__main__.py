"""Entry point for running swimr as a module.

Usage:
    python -m swimr [command] [options]
"""

from swimr.cli.main import app

if __name__ == "__main__":
    app()
