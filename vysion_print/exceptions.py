"""Exceptions raised by vysion-print."""


class VysionPrintError(Exception):
    """Base class for other exceptions"""

    pass


class NotConfiguredError(VysionPrintError):
    """No printer address has been set."""

    def __init__(self, message: str = "Printer not configured"):
        super().__init__(message)


class DeliveryError(VysionPrintError):
    """Bytes could not be delivered to the printer (refused, unreachable or timed out)."""


class ProtocolError(VysionPrintError):
    """A request, JSON body or order payload could not be understood."""
