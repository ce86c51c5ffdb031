"""Natural language to Scryfall query compiler."""

__version__ = "0.1.0"
