"""mergemend - analyze and resolve git merge conflict markers."""

__version__ = "0.1.0"
