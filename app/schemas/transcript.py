"""
Pydantic schemas for transcript endpoints.
"""
from typing import Optional, Any, Dict, List
from datetime import datetime
from pydantic import BaseModel, Field


class TurnCreate(BaseModel):
    """Request schema for POST /sessions/{id}/turns."""
    role: str = Field(..., description="interviewer / candidate (assistant / user accepted)")
    content: str = Field(..., min_length=1)
    confidence: Optional[float] = Field(None, ge=0, le=1, description="Speech-to-text confidence")
    timestamp: Optional[datetime] = None
    metadata: Optional[Dict[str, Any]] = None


class TurnResponse(BaseModel):
    id: int
    session_id: str
    role: str
    content: str
    confidence: Optional[float] = None
    timestamp: datetime
    sequence_number: int
    metadata: Optional[Dict[str, Any]] = Field(None, validation_alias="turn_metadata")

    class Config:
        from_attributes = True


class TurnListResponse(BaseModel):
    session_id: str
    turns: List[TurnResponse]
