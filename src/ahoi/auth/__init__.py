"""Principals, authorization decisions and bearer tokens."""

from ahoi.auth.principal import ADMINISTRATOR, Principal

__all__ = ["ADMINISTRATOR", "Principal"]
