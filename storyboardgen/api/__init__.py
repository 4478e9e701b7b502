"""
API Routes Module
"""

from . import generation, usage, projects, caption_settings, webhooks, health

__all__ = ["generation", "usage", "projects", "caption_settings", "webhooks", "health"]
