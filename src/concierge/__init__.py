"""
Concierge: a conversational banking assistant.

Answers customer questions about their accounts, cards, loans, mortgages,
deposits and securities by resolving intent, fetching read-only account data,
normalizing it and drafting a reply.
"""

__version__ = "0.1.0"
