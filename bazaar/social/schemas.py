"""
Social API Schemas
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from bazaar.social.relationship import RelationshipStatus


class RelationshipResponse(BaseModel):
    viewer_id: Optional[str] = None
    subject_id: str
    status: RelationshipStatus


class ToggleRelationshipRequest(BaseModel):
    """
    Status the client last rendered. Omit it to have the server resolve it first.
    """
    current_status: Optional[RelationshipStatus] = Field(None, description="Status shown to the viewer")


class ToggleRelationshipResponse(BaseModel):
    subject_id: str
    previous_status: RelationshipStatus
    status: RelationshipStatus


class DirectConversationRequest(BaseModel):
    target_user_id: str = Field(..., min_length=1, description="User to open a direct conversation with")


class DirectConversationResponse(BaseModel):
    conversation_id: Optional[str] = None
    redirect_to: str


class FollowStatsResponse(BaseModel):
    followers: int
    following: int


class ProfileCardResponse(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: str
    avatar_url: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    bio: Optional[str] = None
    is_verified: bool = False
    relationship: RelationshipStatus
    stats: FollowStatsResponse
    blocked_by_owner: bool


class ProfileSummaryResponse(BaseModel):
    id: str
    username: Optional[str] = None
    display_name: str
    avatar_url: Optional[str] = None


class FollowListResponse(BaseModel):
    profile_id: str
    items: List[ProfileSummaryResponse]
    offset: int
    limit: int
    has_more: bool
