"""
Entry point for running quantdrill as a module.

Usage:
    python -m quantdrill.delivery practice
    python -m quantdrill.delivery stats
    python -m quantdrill.delivery --help
"""
from .cli import main

if __name__ == "__main__":
    main()
