"""
Prompt enhancement with Gemini.
"""

from .enhancer import PROMPT_TYPES, PromptEnhancementError, PromptEnhancer

__all__ = ["PROMPT_TYPES", "PromptEnhancementError", "PromptEnhancer"]
