"""File system, buffer cache, journal, pipes, console and text utilities of a small teaching OS."""

__version__ = "0.1.0"