"""Click command modules registered on the ``markops`` group in ``cli.py``."""
