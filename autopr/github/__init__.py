"""GitHub repository access."""

from autopr.github.client import RepositoryClient
from autopr.github.codebase import collect_codebase
from autopr.github.exclusions import ExclusionFilter

__all__ = ["ExclusionFilter", "RepositoryClient", "collect_codebase"]
