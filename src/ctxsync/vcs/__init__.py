"""Version-control change source and reference pointer persistence."""

from ctxsync.vcs.changes import ChangeFilter, ChangeSet, FilterOutcome, Rename
from ctxsync.vcs.git_source import GitChangeSource, HistoryEntry, TrackingInfo
from ctxsync.vcs.reference import ReferenceRecord, ReferenceStore

__all__ = [
    "ChangeFilter",
    "ChangeSet",
    "FilterOutcome",
    "GitChangeSource",
    "HistoryEntry",
    "ReferenceRecord",
    "ReferenceStore",
    "Rename",
    "TrackingInfo",
]
