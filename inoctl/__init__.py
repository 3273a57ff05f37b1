"""Drive arduino-cli from the terminal: board discovery, compile, upload, cores and libraries."""

__version__ = "0.3.0"
