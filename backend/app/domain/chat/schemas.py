"""Pydantic schemas for the chat API."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from .models import LastMessage, TransportCredentials


class TransportTokenResponse(BaseModel):
	token: str
	user_id: str
	user_name: str
	user_image: Optional[str] = None

	@classmethod
	def from_model(cls, credentials: TransportCredentials) -> "TransportTokenResponse":
		return cls(
			token=credentials.token,
			user_id=credentials.user_id,
			user_name=credentials.user_name,
			user_image=credentials.user_image,
		)


class ConversationResponse(BaseModel):
	channel_type: str = "messaging"
	channel_id: str = Field(..., examples=["match_229w"])


class CallSessionResponse(BaseModel):
	call_type: str = "default"
	call_id: str = Field(..., examples=["call_229w"])


class LastMessageResponse(BaseModel):
	text: str
	timestamp: str

	@classmethod
	def from_model(cls, message: LastMessage) -> "LastMessageResponse":
		return cls(text=message.text, timestamp=message.timestamp)


class SendMessageRequest(BaseModel):
	text: str = Field(..., min_length=1, max_length=4000)


class MessageResponse(BaseModel):
	id: str
	channel_id: str
	sender_id: Optional[str] = None
	text: str
	created_at: Optional[str] = None
