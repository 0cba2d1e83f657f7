#!/usr/bin/env python3
"""
gittree - terminal commit graph browser

This is a convenience wrapper for running from the repo root.
The actual entry point is gittree.main:main (for pip install).
"""

from gittree.main import main

if __name__ == "__main__":
    main()
