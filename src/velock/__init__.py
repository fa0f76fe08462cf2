"""velock - liquid locker treasury workbench."""

__version__ = "0.3.0"
