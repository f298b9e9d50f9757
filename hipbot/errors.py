"""Error hierarchy — classify failures by type, not by string matching.

Only TransportError is fatal. Everything else is recovered locally by
whoever catches it; nothing here is ever retried automatically.
"""


class HipbotError(Exception):
    """Base class for all hipbot errors."""
    pass


class TransportError(HipbotError):
    """Connection to the server was lost. Fatal, restart the process."""
    pass


class ParseError(HipbotError):
    """Expected child structure of a unit is missing or malformed."""
    pass


class RoutingError(HipbotError):
    """Group-chat sender could not be resolved to a single contact."""
    pass


class StoreError(HipbotError):
    """Session or user store failed to load or save."""
    pass


class CorrelationError(HipbotError):
    """Correlation identifier is already waiting for a reply."""
    pass
