"""Exception types raised by codeatlas.

Extraction problems (malformed declarations, unresolvable names) are absorbed
where they happen; only the cases below propagate to callers.
"""


class CodeAtlasError(Exception):
    """Base class for codeatlas errors."""


class ContractViolationError(CodeAtlasError, ValueError):
    """A required argument was missing, e.g. a None batch or syntax node."""


class UnsupportedLanguageError(CodeAtlasError):
    """No front-end is registered for a language or file extension."""

    def __init__(self, language: str):
        self.language = language
        super().__init__(f"Unsupported language: {language}")


class CompactFormatError(CodeAtlasError, ValueError):
    """A compact line does not match the grammar for its entity kind."""
