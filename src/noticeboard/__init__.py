"""Noticeboard — a small community board backend.

Users sign up and sign in, keep a profile whose every change is recorded
in an append-only history, write posts, and comment on them.
"""

__version__ = "0.1.0"
