"""Pure-Python LDAP message encoding: BER packets, search filters and requests."""

__version__ = "0.1.0"

__all__ = ["ber", "errors", "message", "filter", "modify", "moddn", "search"]