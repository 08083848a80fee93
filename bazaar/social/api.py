"""
Relationship, direct-message hand-off and profile card endpoints
"""

from typing import Optional

from fastapi import APIRouter, Path, Query

from bazaar.core.config import settings
from bazaar.core.deps import BootstrapperDep, MutatorDep, ProfileCardDep, ResolverDep
from bazaar.core.token import CurrentUserDep, OptionalUserDep
from bazaar.models.profile import Profile
from bazaar.social.follows import FOLLOW_PAGE_SIZE, FollowPage
from bazaar.social.schemas import (
    DirectConversationRequest,
    DirectConversationResponse,
    FollowListResponse,
    FollowStatsResponse,
    ProfileCardResponse,
    ProfileSummaryResponse,
    RelationshipResponse,
    ToggleRelationshipRequest,
    ToggleRelationshipResponse,
)

router = APIRouter(tags=["social"])


@router.get("/relationships/{subject_id}", response_model=RelationshipResponse)
async def get_relationship(
    resolver: ResolverDep,
    viewer_id: OptionalUserDep,
    subject_id: str = Path(..., description="User whose relationship to the viewer is resolved"),
):
    status = await resolver.resolve(viewer_id, subject_id)
    return RelationshipResponse(viewer_id=viewer_id, subject_id=subject_id, status=status)


@router.post("/relationships/{subject_id}/toggle", response_model=ToggleRelationshipResponse)
async def toggle_relationship(
    resolver: ResolverDep,
    mutator: MutatorDep,
    viewer_id: CurrentUserDep,
    subject_id: str = Path(..., description="User to follow, request, cancel or accept"),
    payload: Optional[ToggleRelationshipRequest] = None,
):
    """
    Follow button. The client sends the status it rendered; a stale value is
    safe because every transition is idempotent.
    """
    current = payload.current_status if payload else None
    if current is None:
        current = await resolver.resolve(viewer_id, subject_id)

    status = await mutator.toggle(viewer_id, subject_id, current)
    return ToggleRelationshipResponse(subject_id=subject_id, previous_status=current, status=status)


@router.post("/conversations/direct", response_model=DirectConversationResponse)
async def start_direct_conversation(
    data: DirectConversationRequest,
    bootstrapper: BootstrapperDep,
    viewer_id: CurrentUserDep,
):
    """
    Start or get the direct conversation with another member.
    Without a conversation id the client lands on the generic inbox.
    """
    conversation_id = await bootstrapper.get_or_create_direct_conversation(viewer_id, data.target_user_id)
    if conversation_id:
        redirect_to = f"{settings.messages_path}?conversation={conversation_id}"
    else:
        redirect_to = settings.messages_path
    return DirectConversationResponse(conversation_id=conversation_id, redirect_to=redirect_to)


@router.get("/profiles/{profile_id}/card", response_model=ProfileCardResponse)
async def get_profile_card(
    cards: ProfileCardDep,
    viewer_id: OptionalUserDep,
    profile_id: str = Path(..., description="Profile id or username"),
):
    card = await cards.load_card(viewer_id, profile_id)
    profile = card.profile
    return ProfileCardResponse(
        id=profile.id,
        username=profile.username,
        display_name=profile.display_name,
        avatar_url=profile.avatar_url,
        city=profile.city,
        state=profile.state,
        bio=profile.bio,
        is_verified=bool(profile.is_verified),
        relationship=card.relationship,
        stats=FollowStatsResponse(followers=card.stats.followers, following=card.stats.following),
        blocked_by_owner=card.blocked_by_owner,
    )


def _follow_list(profile: Profile, page: FollowPage) -> FollowListResponse:
    return FollowListResponse(
        profile_id=profile.id,
        items=[
            ProfileSummaryResponse(
                id=p.id,
                username=p.username,
                display_name=p.display_name,
                avatar_url=p.avatar_url,
            )
            for p in page.profiles
        ],
        offset=page.offset,
        limit=page.limit,
        has_more=page.has_more,
    )


@router.get("/profiles/{profile_id}/followers", response_model=FollowListResponse)
async def list_followers(
    cards: ProfileCardDep,
    profile_id: str = Path(..., description="Profile id or username"),
    limit: int = Query(FOLLOW_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    q: Optional[str] = Query(None, max_length=64, description="Filter this page by name or username"),
):
    profile, page = await cards.connections(profile_id, followers=True, limit=limit, offset=offset, search=q)
    return _follow_list(profile, page)


@router.get("/profiles/{profile_id}/following", response_model=FollowListResponse)
async def list_following(
    cards: ProfileCardDep,
    profile_id: str = Path(..., description="Profile id or username"),
    limit: int = Query(FOLLOW_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    q: Optional[str] = Query(None, max_length=64, description="Filter this page by name or username"),
):
    profile, page = await cards.connections(profile_id, followers=False, limit=limit, offset=offset, search=q)
    return _follow_list(profile, page)
