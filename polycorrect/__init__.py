"""PolyCorrect - clipboard text correction with four LLM providers at once.

Copies of the clipboard text are sent concurrently to OpenAI, Anthropic,
Gemini and DeepSeek; the answers stream into side-by-side panels and the
chosen one is copied back to the clipboard.
"""

__version__ = "1.0.0"
__author__ = "PolyCorrect Project"
__license__ = "MIT"

__all__ = [
    "__version__",
    "__author__",
    "__license__",
]
