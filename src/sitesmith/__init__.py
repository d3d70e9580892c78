"""Prompt-to-website service: generate, commit, build and deploy static sites."""

__version__ = "0.1.0"
