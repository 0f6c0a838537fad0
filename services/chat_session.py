"""Follow-up questions about a completed palm reading."""

from __future__ import annotations

import logging
import time
from typing import List, Optional

from models.invocation import EndpointKind
from models.reading_models import AnalysisResult, ChatMessage, ChatSender
from services.gemini.errors import InvocationError
from services.gemini.media_inputs import build_contents, text_part
from services.gemini.prompts import chat_prompt
from services.gemini.resilient_invoker import QuotaHook, ResilientInvoker
from services.gemini.response_parser import extract_text

GREETING = "You can ask more questions about your reading."
PLACEHOLDER = "Thinking..."
FALLBACK_ANSWER = "I couldn't generate an answer."


def initial_transcript() -> List[ChatMessage]:
	"""Return a fresh transcript holding only the system greeting."""
	return [ChatMessage(sender=ChatSender.SYSTEM, text=GREETING)]


class ChatSession:
	"""Append question/answer turns to a transcript owned by the caller."""

	def __init__(self, invoker: ResilientInvoker) -> None:
		if invoker is None:
			raise ValueError("ResilientInvoker is required.")
		self.invoker = invoker

	async def ask(
		self,
		transcript: List[ChatMessage],
		analysis: Optional[AnalysisResult],
		question: str,
		*,
		on_quota_exhausted: QuotaHook = None,
	) -> List[ChatMessage]:
		"""Ask one question and resolve its placeholder in place.

		The user message and placeholder are appended before the request is
		awaited, so callers observing the transcript see the pending turn.
		Invocation failures never raise. Whatever happens, the placeholder is
		replaced, with FALLBACK_ANSWER unless an answer arrived.

		Returns:
			The same transcript list, grown by two entries (or untouched when
			there is no analysis or the question is blank).
		"""
		query = (question or "").strip()
		if not query or analysis is None:
			return transcript

		transcript.append(ChatMessage(sender=ChatSender.USER, text=query))
		transcript.append(ChatMessage(sender=ChatSender.BOT, text=PLACEHOLDER))
		placeholder_index = len(transcript) - 1

		answer = FALLBACK_ANSWER
		start = time.time()
		try:
			payload = build_contents([text_part(chat_prompt(analysis.text, query))], role="user")
			request = self.invoker.build_request(payload, EndpointKind.GENERATE)
			response = await self.invoker.invoke(request, on_quota_exhausted=on_quota_exhausted)
			answer = extract_text(response).strip() or FALLBACK_ANSWER
			logging.info(f"Chat answer latency: {time.time() - start:.3f}s")
		except InvocationError as exc:
			logging.error("Chat request failed: %s", exc)
		finally:
			transcript[placeholder_index] = ChatMessage(sender=ChatSender.BOT, text=answer)
		return transcript
