"""Entry point for ``python -m HttpGet``."""

from HttpGet.cli import app

if __name__ == "__main__":
    app()
