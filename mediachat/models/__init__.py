"""
MongoDB document models using Beanie ODM
"""

from typing import List, Type

from beanie import Document as BeanieDocument

from .chat import ChatMessage, Conversation, ConversationMedia


# List of all document models for Beanie initialization
def get_document_models() -> List[Type[BeanieDocument]]:
    """Get all document models for Beanie initialization"""
    return [
        Conversation,
        ChatMessage,
        ConversationMedia,
    ]


__all__ = [
    "Conversation",
    "ChatMessage",
    "ConversationMedia",
    "get_document_models",
]
