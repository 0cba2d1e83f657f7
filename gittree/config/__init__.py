"""Configuration for gittree."""

from gittree.config.settings import Settings

__all__ = ["Settings"]
