"""Pydantic models shared by the FastAPI endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class GenerateResponse(BaseModel):
    success: bool = Field(True, description="Always true for a successful generation")
    imageUrl: str = Field(..., description="URL of the generated image")
    prompt: str = Field(..., description="Prompt echoed back, prefixed when an image was reimagined")


class ErrorResponse(BaseModel):
    error: str = Field(..., description="Human readable error")
    details: Optional[str] = Field(None, description="Provider supplied detail, when available")


class GenerationResultModel(BaseModel):
    imageUrl: str
    prompt: str
    createdAt: datetime
    txHash: Optional[str] = None


class HistoryResponse(BaseModel):
    items: List[GenerationResultModel]


class NotificationModel(BaseModel):
    id: str
    level: str
    title: str
    description: Optional[str] = None
    createdAt: datetime


class NotificationListResponse(BaseModel):
    notifications: List[NotificationModel]


class HealthResponse(BaseModel):
    status: str
    model: str
    configured: bool
    recipient: str
    amount: str
