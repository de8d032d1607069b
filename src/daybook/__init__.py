"""Daybook — personal journal backend.

Users register, log in with bearer tokens, and keep journal entries
that can be read back as generated speech.
"""

__version__ = "0.1.0"
