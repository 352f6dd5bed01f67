"""Simulated memory allocator over a virtual brk heap and mmap regions, with a printf-style formatter."""

__version__ = "0.1.0"
__all__ = ["heap", "allocator", "numfmt", "printf"]