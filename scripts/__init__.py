"""Utility scripts for the watcher console.

Scripts include:
- ``analyze.py``: submit one prompt/output pair and print the canonical record.
"""
