"""
Dependency Injection

FastAPI dependencies for routes.
"""

from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bazaar.infra.db import get_session_factory
from bazaar.social.conversation import ConversationBootstrapper
from bazaar.social.follows import FollowGraph
from bazaar.social.friend_requests import FriendRequestLedger
from bazaar.social.mutator import RelationshipMutator
from bazaar.social.profile_card import ProfileCardService
from bazaar.social.relationship import RelationshipResolver

SessionFactoryDep = Annotated[async_sessionmaker[AsyncSession], Depends(get_session_factory)]


def get_follow_graph(session_factory: SessionFactoryDep) -> FollowGraph:
    return FollowGraph(session_factory)


def get_friend_request_ledger(session_factory: SessionFactoryDep) -> FriendRequestLedger:
    return FriendRequestLedger(session_factory)


FollowGraphDep = Annotated[FollowGraph, Depends(get_follow_graph)]
LedgerDep = Annotated[FriendRequestLedger, Depends(get_friend_request_ledger)]


def get_relationship_resolver(follows: FollowGraphDep, requests: LedgerDep) -> RelationshipResolver:
    return RelationshipResolver(follows, requests)


def get_relationship_mutator(follows: FollowGraphDep, requests: LedgerDep) -> RelationshipMutator:
    return RelationshipMutator(follows, requests)


ResolverDep = Annotated[RelationshipResolver, Depends(get_relationship_resolver)]
MutatorDep = Annotated[RelationshipMutator, Depends(get_relationship_mutator)]


def get_conversation_bootstrapper(session_factory: SessionFactoryDep) -> ConversationBootstrapper:
    return ConversationBootstrapper(session_factory)


def get_profile_card_service(
    session_factory: SessionFactoryDep,
    follows: FollowGraphDep,
    resolver: ResolverDep,
) -> ProfileCardService:
    return ProfileCardService(session_factory, follows, resolver)


BootstrapperDep = Annotated[ConversationBootstrapper, Depends(get_conversation_bootstrapper)]
ProfileCardDep = Annotated[ProfileCardService, Depends(get_profile_card_service)]
