"""Single-target page monitor with a small HTTP control surface."""

__version__ = "0.1.0"
