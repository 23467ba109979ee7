"""
API request/response models - Pydantic schemas

Every API input and output goes through these models, which keeps the
OpenAPI docs and validation in one place.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from heights_ai.domain.models import (
    AIResponse,
    ChatContext,
    ChatMessage,
    QueryOptions,
)


# ==================== Request models ====================

class ChatMessageSchema(BaseModel):
    """One prior conversation message"""
    role: str = Field(..., description="user or assistant")
    content: str = Field(default="")
    metadata: Dict[str, Any] = Field(
        default_factory=dict,
        description="May carry asset_symbol or a classification dict"
    )


class ChatContextSchema(BaseModel):
    message_history: List[ChatMessageSchema] = Field(default_factory=list, max_length=50)


class QueryOptionsSchema(BaseModel):
    use_secondary_reasoner: bool = Field(
        default=False,
        description="Also ask the real-time search reasoner and merge the answers"
    )
    structured: bool = Field(
        default=False,
        description="Extract a structured analysis even for non-analysis intents"
    )
    portfolio_size: Optional[float] = Field(
        default=None,
        gt=0,
        description="Capital used to size a trade setup"
    )


class QueryRequest(BaseModel):
    """Query request"""
    query: str = Field(
        ...,
        max_length=2000,
        description="User question, e.g. \"What's Bitcoin doing today?\""
    )
    context: Optional[ChatContextSchema] = None
    options: Optional[QueryOptionsSchema] = None

    @field_validator('query')
    @classmethod
    def validate_query(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError('query must not be empty')
        return v

    def to_context(self) -> Optional[ChatContext]:
        if self.context is None:
            return None
        return ChatContext(message_history=tuple(
            ChatMessage(role=m.role, content=m.content, metadata=dict(m.metadata))
            for m in self.context.message_history
        ))

    def to_options(self) -> Optional[QueryOptions]:
        if self.options is None:
            return None
        return QueryOptions(
            use_secondary_reasoner=self.options.use_secondary_reasoner,
            structured=self.options.structured,
            portfolio_size=self.options.portfolio_size,
        )


# ==================== Response models ====================

class ResponseMetadataSchema(BaseModel):
    sources: List[str]
    confidence: float = Field(..., ge=0.0, le=1.0)
    data_freshness: str
    processing_time_ms: float
    classification: Optional[Dict[str, Any]] = None
    error_code: Optional[str] = None


class QueryResponse(BaseModel):
    """Serialized AIResponse"""
    id: str
    content: str
    type: str
    metadata: ResponseMetadataSchema
    market_data: List[Dict[str, Any]] = Field(default_factory=list)
    news: List[Dict[str, Any]] = Field(default_factory=list)
    analysis: Optional[Dict[str, Any]] = None
    suggestions: List[str] = Field(default_factory=list)
    timestamp: str
    partial: bool = False


class HealthResponse(BaseModel):
    status: str = Field(..., description="healthy / degraded")
    timestamp: datetime
    version: str
    components: Dict[str, str] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    success: bool = False
    error_code: str
    error_message: str
    details: Optional[Dict[str, Any]] = None


def to_query_response(response: AIResponse) -> QueryResponse:
    return QueryResponse.model_validate(response.to_dict())
