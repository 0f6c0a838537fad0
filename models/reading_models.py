"""Domain models owned by the workflow controller."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class WorkflowView(str, Enum):
	INPUT = "input"
	LOADING = "loading"
	RESULT = "result"


class SpiritStatus(str, Enum):
	IDLE = "idle"
	LOADING = "loading"
	DONE = "done"


class ChatSender(str, Enum):
	SYSTEM = "system"
	USER = "user"
	BOT = "bot"


@dataclass(frozen=True)
class AnalysisResult:
	"""Markdown reading produced for one subject."""

	text: str
	subject_name: str


@dataclass
class SpiritRecord:
	"""State of the derived guardian-spirit image."""

	status: SpiritStatus = SpiritStatus.IDLE
	image_data: str = ""
	caption: str = ""

	@classmethod
	def idle(cls) -> "SpiritRecord":
		return cls()


@dataclass(frozen=True)
class ChatMessage:
	"""One transcript entry."""

	sender: ChatSender
	text: str


@dataclass(frozen=True)
class WorkflowStatus:
	"""Read-only snapshot handed to the presentation layer."""

	view: WorkflowView
	subject_name: str
	has_image: bool
	image_width: Optional[int]
	image_height: Optional[int]
	analysis_text: Optional[str]
	spirit: SpiritRecord
	transcript: Tuple[ChatMessage, ...] = field(default_factory=tuple)
	chat_pending: bool = False
	notice: Optional[str] = None
	quota_notice: bool = False
