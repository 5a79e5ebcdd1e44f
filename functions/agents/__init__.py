"""MovSense Agents.

This package contains the AI-backed pipeline agents:
- Base class with stage-attributed model calls
- Room classifier and per-room detector (detection pipeline)
- Move time agent with deterministic fallback (quote pipeline)
- Orchestrators (pipeline coordination)
"""

from agents.base_agent import BaseAgent
from agents.move_time_agent import MoveTimeAgent
from agents.room_classifier import RoomClassifierAgent
from agents.room_detector import RoomDetectorAgent

__all__ = ["BaseAgent", "MoveTimeAgent", "RoomClassifierAgent", "RoomDetectorAgent"]
