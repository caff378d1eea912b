"""
Combine Files - concatenate a directory tree into one text file.

This package walks a directory tree, skips everything excluded by the
per-directory ``.gitignore`` files (git semantics: negation, anchoring,
directory-only rules and ``**``), skips binary files, and writes the
remaining file contents into a single output for easy LLM context sharing.
"""

__version__ = "0.2.0"
__author__ = "Combine Files Team"
