"""Entry point for python -m prism_kg execution.

This module enables running prism-kg as a module:
    python -m prism_kg --help
    python -m prism_kg explore "ancient astronauts"
"""

from prism_kg.cli import app

if __name__ == "__main__":
    app()
