"""
Toolgate - Security-mediated tool execution for language-model agents.

Toolgate sits between a language model and the host system. The model asks
for tools by embedding directives in its text; toolgate decides whether each
request may run. It provides:
- Permission levels and per-category access control (least privilege)
- Human approval for sensitive tools, with remembered decisions
- Backups before modifying tools run
- An append-only audit trail of every attempt
- A bounded ReAct (Reasoning, Acting, Observing) loop

Example usage:
    $ toolgate react "Read notes.txt" --user alice
    $ toolgate audit --user alice
    $ toolgate tools
"""

__version__ = "0.1.0"
__author__ = "Toolgate Contributors"

__all__ = [
    "__version__",
    "__author__",
]
