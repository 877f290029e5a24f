"""ctxsync - keeps AI context documentation in sync with a git repository."""

__version__ = "0.1.0"
