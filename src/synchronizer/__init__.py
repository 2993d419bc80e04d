"""File Synchronizer: mirrors new and modified files into a destination tree."""

__version__ = "1.0.0"
