"""
mono_merger package

Provides the CLI entrypoint (`python -m mono_merger`) and the pieces it
drives: the repository catalog, branch classifier, history rewrite pipeline
and the resumable run controller.
"""

from .cli import main

__all__ = ["main"]
