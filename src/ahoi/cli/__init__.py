"""Ahoi command-line interface."""
