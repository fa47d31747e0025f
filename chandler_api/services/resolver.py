"""
Conversation and caller resolution for a chat turn.

Before a turn is sent the service needs two independent facts from the
upstream, fetched concurrently:

    1. Which conversation to continue: list the caller's conversations for
       the model (page 1), pick one, and take the id of its last message as
       the parent of the new turn. No conversations means a new one.
    2. Who the caller is: the email behind the bearer token, sent as ``uid``.

Either lookup failing fails the whole resolution with ResolutionError and
the sibling lookup is cancelled; nothing partial is returned.

Selection policy:
    ``random`` (default) picks uniformly among the listed page, spreading
    continuation across recent conversations. ``first`` always takes the
    first entry.

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
import asyncio
import random
from dataclasses import dataclass
from typing import Literal, Optional, Sequence, Tuple

import structlog

from chandler_api.services.errors import ResolutionError, UpstreamError
from chandler_api.services.upstream import UpstreamClient
from chandler_api.services.upstream_models import (
    ConversationInfoRequest,
    ConversationSummary,
    ListConversationsRequest,
)

logger = structlog.get_logger(__name__)

SelectionPolicy = Literal["random", "first"]


@dataclass(frozen=True)
class ConversationContext:
    """
    Upstream conversation a turn continues. All fields empty means a new conversation.

    Attributes:
        app_name: Upstream application the conversation belongs to
        conversation_id: Upstream conversation id
        parent_message_id: Id of the last message in that conversation
    """
    app_name: str = ""
    conversation_id: str = ""
    parent_message_id: str = ""

    @property
    def is_new(self) -> bool:
        return not (self.app_name or self.conversation_id or self.parent_message_id)


@dataclass(frozen=True)
class UserIdentity:
    email: str


class ConversationResolver:
    """
    Resolve (ConversationContext, UserIdentity) for one inbound request.

    Args:
        upstream: Per-request upstream client
        web_url: ``web_url`` value sent with the conversation detail call
        page_size: Conversations listed per lookup
        selection: ``random`` or ``first``
        rng: Random source for the ``random`` policy

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """

    def __init__(
        self,
        upstream: UpstreamClient,
        web_url: str,
        page_size: int = 10,
        selection: SelectionPolicy = "random",
        rng: Optional[random.Random] = None,
    ):
        self.upstream = upstream
        self.web_url = web_url
        self.page_size = page_size
        self.selection = selection
        self._rng = rng or random.Random()

    def select_conversation(self, conversations: Sequence[ConversationSummary]) -> ConversationSummary:
        """Pick the conversation to continue from a non-empty page."""
        if self.selection == "first":
            return conversations[0]
        return self._rng.choice(conversations)

    async def resolve_conversation(self, model_name: str) -> ConversationContext:
        """
        Find the conversation and parent message a new turn should continue.

        Args:
            model_name: Model the conversations are filtered by

        Returns:
            ConversationContext, empty when the caller has no conversation
            for this model

        Raises:
            UpstreamError: List or detail call failed
        """
        listing = await self.upstream.list_conversations(
            ListConversationsRequest(
                model_names=[model_name],
                page_num=1,
                page_size=self.page_size,
            )
        )
        if not listing.data:
            logger.debug("resolver.no_conversations", model=model_name)
            return ConversationContext()

        conversation = self.select_conversation(listing.data)
        detail = await self.upstream.conversation_info(
            ConversationInfoRequest(
                conversation_id=conversation.conversation_id,
                is_v2=True,
                web_url=self.web_url,
            )
        )
        # A conversation without messages is continued with no parent.
        parent_message_id = detail.data[-1].message_id if detail.data else ""

        logger.debug(
            "resolver.conversation_selected",
            model=model_name,
            conversation_id=conversation.conversation_id,
            candidates=len(listing.data),
        )
        return ConversationContext(
            app_name=conversation.app_name,
            conversation_id=conversation.conversation_id,
            parent_message_id=parent_message_id,
        )

    async def resolve_identity(self) -> UserIdentity:
        info = await self.upstream.user_info()
        return UserIdentity(email=info.email)

    async def resolve(
        self,
        model_name: str,
        deadline: Optional[float] = None,
    ) -> Tuple[ConversationContext, UserIdentity]:
        """
        Run both lookups concurrently and join them.

        Args:
            model_name: Requested model
            deadline: Seconds allowed for both lookups together (None: no limit)

        Returns:
            Tuple of (ConversationContext, UserIdentity)

        Raises:
            ResolutionError: Either lookup failed or the deadline passed;
                the other lookup is cancelled

        Last Grunted: 10/19/2026 03:30:00 PM UTC
        """
        tasks = (
            asyncio.create_task(self.resolve_conversation(model_name)),
            asyncio.create_task(self.resolve_identity()),
        )
        try:
            context, identity = await asyncio.wait_for(asyncio.gather(*tasks), timeout=deadline)
        except UpstreamError as exc:
            logger.error(
                "resolver.failed",
                model=model_name,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise ResolutionError(f"conversation resolution failed: {exc}") from exc
        except asyncio.TimeoutError as exc:
            logger.error("resolver.timeout", model=model_name, deadline=deadline)
            raise ResolutionError(f"conversation resolution timed out after {deadline}s") from exc
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        return context, identity
