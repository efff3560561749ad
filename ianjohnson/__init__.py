"""Build tooling for the ianjohnson.dev personal site."""

__version__ = "0.1.0"
