"""Stateless gateway in front of the Lichess REST API."""

__version__ = "0.1.0"
