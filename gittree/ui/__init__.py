"""Terminal user interface for gittree"""
