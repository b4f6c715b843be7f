"""localcert display utilities."""
