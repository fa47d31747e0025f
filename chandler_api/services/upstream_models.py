"""
Pydantic models for the Chandler AI upstream wire format.

Every upstream call is a JSON POST under ``{domain}/api/``:
    - chat/chatHistory        ListConversationsRequest  -> ListConversationsResponse
    - chat/conversationInfo   ConversationInfoRequest   -> ConversationInfoResponse
    - chat/updateConversation RenameConversationRequest -> (no body used)
    - chat/Chat               ChatConversationRequest   -> ``data:{...}`` lines of StreamFrame
    - user/info               (no body)                 -> UserInfoResponse

The upstream is loose with nulls, so response models drop ``null`` keys
before validation and fall back to field defaults.

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class UpstreamModel(BaseModel):
    """Base model for upstream payloads: unknown keys ignored, nulls defaulted."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data


# ============================================================================
# chat/chatHistory
# ============================================================================

class ListConversationsRequest(UpstreamModel):
    keywords: str = ""
    model_names: List[str] = Field(default_factory=list)
    page_num: int = 1
    page_size: int = 10


class ConversationSummary(UpstreamModel):
    """One entry of the conversation history page."""

    id: int = 0
    conversation_id: str = ""
    model_name: str = ""
    conversation_title: str = ""
    app_name: str = ""
    is_collect: int = 0
    parent_message_id: str = ""
    platform: int = 0
    uid: str = ""
    create_time: str = ""
    create_timestamp: int = 0


class ListConversationsResponse(UpstreamModel):
    total: int = 0
    msg: str = ""
    data: List[ConversationSummary] = Field(default_factory=list)


# ============================================================================
# chat/conversationInfo
# ============================================================================

class ConversationInfoRequest(UpstreamModel):
    conversation_id: str
    is_v2: bool = Field(default=True, alias="isV2")
    web_url: str


class ConversationMessage(UpstreamModel):
    """One exchange of a conversation; ``message_id`` is the parent for the next turn."""

    model_name: str = ""
    app_name: str = ""
    message_id: str = ""
    question_len: int = 0
    qas: List[Dict[str, Any]] = Field(default_factory=list)
    create_time: str = ""
    update_time: str = ""


class ConversationInfoResponse(UpstreamModel):
    data: List[ConversationMessage] = Field(default_factory=list)
    msg: str = ""


# ============================================================================
# chat/updateConversation
# ============================================================================

class RenameConversationRequest(UpstreamModel):
    conversation_id: str
    is_collect: int = 0
    new_conversation_title: str


# ============================================================================
# chat/Chat
# ============================================================================

class ChatConversationRequest(UpstreamModel):
    """
    One chat turn sent to the upstream.

    Empty ``app_name``/``conversation_id``/``parent_message_id`` start a new
    conversation. ``global_timeout``, ``request_timeout`` and ``max_retries``
    are forwarded for the upstream to honour; this service never retries.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """

    ai_reply: str = Field(default="", alias="aireply")
    answer_again: bool = False
    app_name: str = ""
    attachment_list: List[Any] = Field(default_factory=list)
    conversation_id: str = ""
    global_timeout: int = 100
    max_retries: int = 1
    model_name: str
    parent_message_id: str = ""
    prompt: str
    request_timeout: int = 30
    status: str = ""
    timestamp: int
    uid: str
    web_url: str


class StreamDelta(UpstreamModel):
    delta: str = ""
    message_type: str = ""


class StreamFrame(UpstreamModel):
    """Decoded body of one ``data:{...}`` line of the chat stream."""

    delta: str = ""
    delta_type: str = ""
    message_type: str = ""
    conversation_id: str = ""
    message_id: str = ""
    image_path: str = ""
    delta_list: List[Optional[StreamDelta]] = Field(default_factory=list)


# ============================================================================
# user/info
# ============================================================================

class UserInfoResponse(UpstreamModel):
    code: int = 0
    email: str = ""
    msg: str = ""
    token: str = ""
