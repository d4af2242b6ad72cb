"""
TaskForge - requirements documents to dependency-ordered development tasks.

Turns a PRD into structured tasks and subtasks through an LLM, with a
response-reliability pipeline that never lets a malformed reply reach the caller.
"""

__version__ = "0.1.0"
__author__ = "TaskForge Team"

from taskforge.core.pipeline import GenerationPipeline

__all__ = ["GenerationPipeline", "__version__"]
