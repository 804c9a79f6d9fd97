"""
ECounter CLI Entry Point

This module allows running ecounter as:
    python -m ecounter [command] [options]
"""

from ecounter.cli import main

if __name__ == "__main__":
    main()
