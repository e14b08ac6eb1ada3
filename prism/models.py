"""
Data models for OpenAI-compatible API
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional, Dict, Any, Literal, Union


class Message(BaseModel):
    """OpenAI-compatible message model"""
    role: Literal["system", "user", "assistant"]
    content: str
    name: Optional[str] = None


class ChatCompletionRequest(BaseModel):
    """OpenAI-compatible chat completion request"""
    model: str = Field(min_length=1)
    messages: List[Message] = Field(min_length=1)
    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    top_p: Optional[float] = Field(default=None, ge=0, le=1)
    max_tokens: Optional[int] = Field(default=None, ge=0)
    presence_penalty: Optional[float] = Field(default=None, ge=-2, le=2)
    frequency_penalty: Optional[float] = Field(default=None, ge=-2, le=2)
    stop: Optional[Union[str, List[str]]] = None
    n: Optional[int] = Field(default=None, ge=1)
    stream: bool = False
    user: Optional[str] = None

    def to_payload(self, stream: Optional[bool] = None) -> Dict[str, Any]:
        """Request body for an OpenAI-compatible backend, unset parameters omitted"""
        payload = self.model_dump(exclude_none=True)
        if stream is not None:
            payload["stream"] = stream
        return payload

    def last_user_message(self) -> Optional[str]:
        for msg in reversed(self.messages):
            if msg.role == "user":
                return msg.content
        return None

    def has_system_message(self) -> bool:
        return any(msg.role == "system" for msg in self.messages)


class Usage(BaseModel):
    model_config = ConfigDict(extra="allow")

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    @classmethod
    def from_counts(cls, prompt_tokens: int, completion_tokens: int) -> "Usage":
        return cls(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        )


class ResponseMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: str = "assistant"
    content: Optional[str] = None


class Choice(BaseModel):
    model_config = ConfigDict(extra="allow")

    index: int = 0
    message: ResponseMessage
    finish_reason: Optional[str] = None


class ChatCompletionResponse(BaseModel):
    """
    Complete (non-streaming) chat response.

    Unknown upstream fields are kept, and `to_wire()` only emits fields that
    were present, so a backend body survives the gateway unchanged.
    """
    model_config = ConfigDict(extra="allow")

    id: str
    object: str = "chat.completion"
    created: Optional[int] = None
    model: Optional[str] = None
    choices: List[Choice] = Field(default_factory=list)
    usage: Optional[Usage] = None

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def content(self) -> str:
        if self.choices and self.choices[0].message.content:
            return self.choices[0].message.content
        return ""


class Delta(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Optional[str] = None
    content: Optional[str] = None


class ChunkChoice(BaseModel):
    model_config = ConfigDict(extra="allow")

    index: int = 0
    delta: Delta = Field(default_factory=Delta)
    finish_reason: Optional[str] = None


class ChatCompletionChunk(BaseModel):
    """One incremental frame of a streamed chat response"""
    model_config = ConfigDict(extra="allow")

    id: str
    object: str = "chat.completion.chunk"
    created: Optional[int] = None
    model: Optional[str] = None
    choices: List[ChunkChoice] = Field(default_factory=list)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)

    def is_first(self) -> bool:
        return bool(self.choices) and self.choices[0].delta.role is not None

    def is_final(self) -> bool:
        return bool(self.choices) and self.choices[0].finish_reason is not None

    def content(self) -> str:
        if self.choices and self.choices[0].delta.content:
            return self.choices[0].delta.content
        return ""

    def finish_reason(self) -> Optional[str]:
        if self.choices:
            return self.choices[0].finish_reason
        return None


class ErrorDetail(BaseModel):
    message: str
    type: str
    param: Optional[str] = None
    code: Optional[str] = None


class ErrorResponse(BaseModel):
    error: ErrorDetail


class ModelCard(BaseModel):
    id: str
    object: str = "model"
    owned_by: str


class ModelList(BaseModel):
    object: str = "list"
    data: List[ModelCard] = Field(default_factory=list)
