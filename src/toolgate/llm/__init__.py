"""
Language-model boundary for toolgate.

Components:
    - LanguageModel: Abstract text-generation interface
    - ContextRetriever: Abstract background-text provider
    - OllamaModel: LanguageModel backed by a local Ollama server
    - DeterministicFallbackModel: Rule-based model used when no real one is available
    - StaticContextRetriever: Keyword-matched fixed snippets
"""

from toolgate.llm.base import ContextRetriever, LanguageModel, StaticContextRetriever
from toolgate.llm.fallback import DeterministicFallbackModel
from toolgate.llm.ollama import OllamaConfig, OllamaModel

__all__ = [
    "ContextRetriever",
    "DeterministicFallbackModel",
    "LanguageModel",
    "OllamaConfig",
    "OllamaModel",
    "StaticContextRetriever",
]
