"""Slack bot that tracks GitLab merge request reviews."""

__version__ = "1.0.0"
