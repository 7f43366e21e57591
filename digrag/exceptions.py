"""Custom exception hierarchy for digrag."""


class DigragError(Exception):
    """Base exception for digrag errors."""


class ConfigError(DigragError):
    """Raised when configuration is invalid or incomplete."""


class IndexLoadError(DigragError):
    """Raised when a persisted index artifact cannot be read or is malformed."""


class DocumentParseError(DigragError):
    """Raised when an input document source cannot be parsed."""


class BuildError(DigragError):
    """Raised when an index build cannot be completed."""
