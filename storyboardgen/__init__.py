"""
StoryboardGen

Consistent-character storyboard generation service: per-scene image
generation, monthly credit accounting and project persistence.
"""

__version__ = "1.0.0"
