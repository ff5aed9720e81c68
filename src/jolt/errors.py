"""
Error types reported to the accumulator.

None of these abort a collection cycle. They describe how much work was
skipped: a server permanently (ConfigError), a server for one cycle
(TransportError, ProtocolError) or a single metric for one cycle
(RemoteStatusError, DataError).
"""


class JoltError(Exception):
    """Base class for everything jolt reports."""


class ConfigError(JoltError):
    """Malformed server connection string, metric scope or config file."""


class TransportError(JoltError):
    """Connection failure or timeout talking to an agent."""


class ProtocolError(JoltError):
    """Non-200 HTTP status, undecodable body or a response of the wrong size."""


class RemoteStatusError(JoltError):
    """A sub-response had no status or a status other than 200."""


class DataError(JoltError):
    """A successful sub-response without a 'value' key."""
