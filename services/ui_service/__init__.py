"""
UI service - handles user interface components and interactions.
"""

from .chat_interface import ChatInterface, get_conversation_manager, image_to_data_uri

__all__ = [
    'ChatInterface',
    'get_conversation_manager',
    'image_to_data_uri'
]
