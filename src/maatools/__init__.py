"""Remote-control protocol server for automation agents."""

__version__ = "0.1.0"
