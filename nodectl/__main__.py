# nodectl/__main__.py
"""Entry point for `python -m nodectl`."""

from nodectl.cli import app

if __name__ == "__main__":
    app()
