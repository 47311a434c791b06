"""
agentloop Plugins - Ready-made tool plugins
"""

from .web import WEB_CATEGORY, WebFetcher, create_web_plugin, extract_text

__all__ = ["WEB_CATEGORY", "WebFetcher", "create_web_plugin", "extract_text"]
