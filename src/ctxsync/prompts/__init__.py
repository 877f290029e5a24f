"""Prompt and artifact templates."""

from ctxsync.prompts.renderer import PromptRenderer, format_bytes

__all__ = ["PromptRenderer", "format_bytes"]
