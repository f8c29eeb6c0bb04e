"""graduate: all-or-nothing promotion of a set of applications to a remote environment."""

__version__ = "0.1.0"
