"""Music Share: serve local audio directories over HTTP."""

__version__ = "0.1.0"
