"""Route modules of the ``/ahoi/v1`` namespace."""
