"""Webflow infrastructure package."""

from .webflow_client import WebflowClient, WebflowClientFactory

__all__ = ["WebflowClient", "WebflowClientFactory"]
