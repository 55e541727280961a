"""
API request/response models
Pydantic models for FastAPI endpoints
"""
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from ..models import ChatTurn, OutputFormat, UserQuery


class QueryRequest(BaseModel):
    """Query request model."""
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(min_length=1)
    conversation_id: str = "default"
    output_format: OutputFormat = OutputFormat.FREE_FORM
    response_schema: Optional[str] = Field(default=None, alias="schema_json")

    def to_user_query(self) -> UserQuery:
        return UserQuery(
            text=self.query,
            conversation_id=self.conversation_id,
            output_format=self.output_format,
            response_schema=self.response_schema
        )


class QueryResponse(BaseModel):
    """Blocking query response."""
    answer: str
    conversation_id: str
    latency_ms: float


class ConversationResponse(BaseModel):
    """Stored history of one conversation."""
    conversation_id: str
    messages: List[ChatTurn]
