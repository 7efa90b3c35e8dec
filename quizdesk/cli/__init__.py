"""Command-line interface for quizdesk."""

from .main import app, main

__all__ = ["app", "main"]
