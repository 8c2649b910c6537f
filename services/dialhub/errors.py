"""Exception hierarchy shared by the dial transports and the hub."""


class DialError(Exception):
    """Base class for every error raised by this package."""


class UnsupportedTransportError(DialError):
    """The host has no capability for the requested transport."""


class TransportConnectionError(DialError, ConnectionError):
    """Transport-level failure while connecting or opening a link."""


class ConnectionTimeoutError(TransportConnectionError):
    """The push stream neither opened nor failed within the connect bound."""


class PayloadError(DialError):
    """A publisher posted something the hub refuses to broadcast."""


class MalformedPayloadError(PayloadError):
    """Body is not a valid JSON object."""


class ValidationError(PayloadError):
    """Body is JSON but lacks a required field."""
