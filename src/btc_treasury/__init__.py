"""Bitcoin treasury tracker: upstream sync, durable storage and cached read paths."""

__version__ = "0.1.0"
