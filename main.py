#!/usr/bin/env python3
"""Mergemend - merge conflict analysis and resolution."""

from mergemend.cli import main

if __name__ == "__main__":
    main()
