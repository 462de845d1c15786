"""5/3/1 training block tracker for athletes and coaches."""

__version__ = "0.1.0"
