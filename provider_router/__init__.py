"""Provider router - picks the model provider for each chat request."""

__version__ = "0.1.0"
