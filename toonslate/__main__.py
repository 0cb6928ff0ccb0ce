"""Module entrypoint for running Toonslate as ``python -m toonslate``."""

from __future__ import annotations

from toonslate.cli import main


if __name__ == "__main__":
    main()
