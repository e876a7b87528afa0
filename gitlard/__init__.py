"""Keep large files out of git history, using the git-fat placeholder format."""

__version__ = "0.1.0"
__all__ = ["__version__"]