"""Artifact content generation."""

from ctxsync.generation.generator import ArtifactGenerator, ExecutorArtifactGenerator

__all__ = ["ArtifactGenerator", "ExecutorArtifactGenerator"]
