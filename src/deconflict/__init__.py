"""Automatic three-way reconciliation of Syncthing conflict files."""

__version__ = "0.1.0"
