from bazaar.models.base import Base
from bazaar.models.conversation import Conversation, ConversationParticipant
from bazaar.models.friend import FriendRequest, UserBlock
from bazaar.models.profile import Profile

__all__ = [
    "Base",
    "Profile",
    "FriendRequest",
    "UserBlock",
    "Conversation",
    "ConversationParticipant",
]
