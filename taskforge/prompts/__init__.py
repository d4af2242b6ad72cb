"""Prompt templates and the prompt builder."""

from taskforge.prompts.builder import PromptBuilder, PromptMode, PromptPair
from taskforge.prompts.templates import ALL_TEMPLATES, PromptTemplate, get_template

__all__ = [
    "ALL_TEMPLATES",
    "PromptBuilder",
    "PromptMode",
    "PromptPair",
    "PromptTemplate",
    "get_template",
]
