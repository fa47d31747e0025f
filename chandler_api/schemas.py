"""
OpenAI-compatible Pydantic models.

Request side:
{
    "model": "gpt-3.5",                    # Required
    "messages": [                          # Required
        {"role": "system", "content": "..."},
        {"role": "user", "content": "..."}
    ],
    "stream": false,                       # Optional
    ...                                    # Other OpenAI fields accepted, not forwarded
}

Response side: ``chat.completion`` documents, ``chat.completion.chunk``
streaming chunks and the ``/v1/models`` list.

Reference: https://platform.openai.com/docs/api-reference/chat

Last Grunted: 10/19/2026 03:30:00 PM UTC
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Chat Completions
# ============================================================================

class ChatMessage(BaseModel):
    """
    OpenAI Chat Message object.

    Attributes:
        role: The role of the message author (system, user, assistant, tool)
        content: Text, or an array of content parts (only text parts are used)
        name: Optional name for the participant

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    model_config = ConfigDict(extra="allow")

    role: str
    content: Optional[Union[str, List[Dict[str, Any]]]] = None
    name: Optional[str] = None


class ChatCompletionRequest(BaseModel):
    """
    OpenAI Chat Completions API request body.

    Only ``model``, ``messages`` and ``stream`` drive the upstream call;
    sampling parameters are accepted for client compatibility and ignored
    because the upstream exposes no equivalent.

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    model_config = ConfigDict(extra="allow")

    model: str
    messages: List[ChatMessage] = Field(default_factory=list)
    stream: Optional[bool] = False
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    user: Optional[str] = None


class UsageInfo(BaseModel):
    """
    OpenAI token usage statistics.

    Attributes:
        prompt_tokens: Tokens in the input prompt
        completion_tokens: Tokens in the generated completion
        total_tokens: Sum of prompt + completion tokens
    """
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


class ChatCompletionChoice(BaseModel):
    index: int
    message: ChatMessage
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    """
    OpenAI Chat Completions API response body.

    Attributes:
        id: Completion identifier (the upstream message id)
        object: Always "chat.completion"
        created: Unix timestamp of creation
        model: Model used for completion
        choices: Single completion choice
        usage: Token usage statistics

    Last Grunted: 10/19/2026 03:30:00 PM UTC
    """
    id: str
    object: str = "chat.completion"
    created: int
    model: str
    choices: List[ChatCompletionChoice]
    usage: UsageInfo


class ChatCompletionChunkDelta(BaseModel):
    role: Optional[str] = None
    content: Optional[str] = None


class ChatCompletionChunkChoice(BaseModel):
    index: int
    delta: ChatCompletionChunkDelta
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    """
    OpenAI streaming chunk object, sent as ``data: {...}`` frames.

    Attributes:
        id: Upstream message id of the delta
        object: Always "chat.completion.chunk"
        created: Unix timestamp
        model: Model name
        choices: Chunk choices
    """
    id: str
    object: str = "chat.completion.chunk"
    created: int
    model: str
    choices: List[ChatCompletionChunkChoice]


# ============================================================================
# Models
# ============================================================================

class ModelObject(BaseModel):
    """OpenAI Model object representation."""

    id: str
    object: str = "model"
    created: int
    owned_by: str


class ModelListResponse(BaseModel):
    object: str = "list"
    data: List[ModelObject]
