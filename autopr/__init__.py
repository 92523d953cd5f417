"""autopr: turn a repository snapshot into a reviewed pull request."""

__version__ = "0.1.0"
