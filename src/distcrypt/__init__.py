"""Distributed file encryption coordinator."""

from distcrypt.__about__ import __version__

__all__ = ["__version__"]
