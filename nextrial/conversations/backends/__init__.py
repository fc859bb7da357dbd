from nextrial.conversations.backends.memory import InMemoryConversationBackend
from nextrial.conversations.backends.supabase import SupabaseConversationBackend

__all__ = [
    "InMemoryConversationBackend",
    "SupabaseConversationBackend",
]
