"""gittree - GitHub-style commit graph for the terminal"""

__version__ = "0.1.0"
