"""
WebSocket message schemas.
"""
from pydantic import BaseModel, Field
from typing import Literal

from app.models import PlaybackEvent


# ==================== CLIENT MESSAGES ====================

class IntentMessage(BaseModel):
    """Player intent sent by the tab, e.g. {"type": "intent", "action": "next"}"""
    type: Literal["intent"]
    action: str
    data: dict = Field(default_factory=dict)


class HandleEventMessage(BaseModel):
    """Report from the tab's audio element"""
    type: Literal["handle_event"]
    data: PlaybackEvent

