"""Corpus freshness classification."""

from ctxsync.corpus.classifier import CorpusState, StateClassifier, StateReport

__all__ = ["CorpusState", "StateClassifier", "StateReport"]
