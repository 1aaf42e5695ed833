"""
Concierge model module.

This module provides the conversation pipeline for the Concierge system.
"""

from .main import process_message

__all__ = ["process_message"]
