#!/usr/bin/env python3
"""Entry point for ``python -m magnetdav``."""

from __future__ import annotations

from magnetdav.cli.main import cli

if __name__ == "__main__":
    cli()
