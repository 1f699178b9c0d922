"""
Language-model and context-retrieval boundaries.

The orchestrator depends only on these interfaces:
    - LanguageModel: prompt in, text out, may be unavailable
    - ContextRetriever: query in, background text out

Prompt section markers live here so prompt builders and deterministic
models agree on them without importing each other.
"""

import threading
from abc import ABC, abstractmethod

# Prompt section markers
QUERY_MARKER = "User Query:"
OBSERVATIONS_MARKER = "## Observations"
CONTEXT_MARKER = "## Relevant context"


class LanguageModel(ABC):
    """
    Text-generation boundary.

    Implementations must honour cancel_event where they can (e.g. between
    retries) and raise an LLMError subclass on backend failures.
    """

    @property
    @abstractmethod
    def is_available(self) -> bool:
        """Whether generate() can currently be called."""
        ...

    @abstractmethod
    def generate(self, prompt: str, cancel_event: threading.Event | None = None) -> str:
        """
        Generate text for a prompt.

        Args:
            prompt: The full prompt
            cancel_event: Cooperative cancellation signal

        Returns:
            The generated text
        """
        ...

    def get_name(self) -> str:
        return self.__class__.__name__


class ContextRetriever(ABC):
    """Supplies background text relevant to a query."""

    @abstractmethod
    def retrieve(self, query: str) -> str:
        """Relevant context for the query, or an empty string."""
        ...


class StaticContextRetriever(ContextRetriever):
    """
    Returns fixed snippets.

    Snippets are included when any of their keywords appear in the query;
    snippets registered without keywords are always included.
    """

    def __init__(self, snippets: dict[str, list[str]] | None = None) -> None:
        self._snippets = dict(snippets or {})

    def add(self, text: str, keywords: list[str] | None = None) -> None:
        self._snippets[text] = list(keywords or [])

    def retrieve(self, query: str) -> str:
        lowered = query.lower()
        selected = [
            text
            for text, keywords in self._snippets.items()
            if not keywords or any(k.lower() in lowered for k in keywords)
        ]
        return "\n\n".join(selected)
