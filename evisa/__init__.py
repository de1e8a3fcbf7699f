"""Vietnam eVisa Portal — visa application intake."""

__version__ = "1.0.0"
