import asyncio
import json

import httpx
import pytest

from fakes import ScriptedTransport, error_response, text_response
from models.reading_models import AnalysisResult, ChatSender
from services.chat_session import FALLBACK_ANSWER, PLACEHOLDER, ChatSession, initial_transcript

ANALYSIS = AnalysisResult(text="Your heart line is deep.", subject_name="Alice")


@pytest.mark.parametrize("k", [1, 3])
async def test_successful_asks_grow_transcript_by_two(make_invoker, k):
    transport = ScriptedTransport([text_response(f"answer {i}") for i in range(k)])
    session = ChatSession(make_invoker(transport))
    transcript = initial_transcript()

    for i in range(k):
        await session.ask(transcript, ANALYSIS, f"question {i}")

    assert len(transcript) == 1 + 2 * k
    for i in range(k):
        user, bot = transcript[1 + 2 * i], transcript[2 + 2 * i]
        assert (user.sender, user.text) == (ChatSender.USER, f"question {i}")
        assert (bot.sender, bot.text) == (ChatSender.BOT, f"answer {i}")
    assert all(msg.text != PLACEHOLDER for msg in transcript)


async def test_prompt_embeds_full_analysis_and_question(make_invoker):
    transport = ScriptedTransport([text_response("yes")])
    session = ChatSession(make_invoker(transport))

    await session.ask(initial_transcript(), ANALYSIS, "  Will I travel?  ")

    body = json.loads(transport.requests[0].content)
    turn = body["contents"][0]
    assert turn["role"] == "user"
    assert ANALYSIS.text in turn["parts"][0]["text"]
    assert "Will I travel?" in turn["parts"][0]["text"]


async def test_failure_replaces_placeholder_with_fallback(make_invoker):
    transport = ScriptedTransport([error_response(500, "boom")])
    session = ChatSession(make_invoker(transport))
    transcript = initial_transcript()

    await session.ask(transcript, ANALYSIS, "Why?")

    assert len(transcript) == 3
    assert transcript[-1].text == FALLBACK_ANSWER


async def test_empty_answer_uses_fallback(make_invoker):
    transport = ScriptedTransport([httpx.Response(200, json={"candidates": []})])
    session = ChatSession(make_invoker(transport))
    transcript = initial_transcript()

    await session.ask(transcript, ANALYSIS, "Why?")

    assert transcript[-1].text == FALLBACK_ANSWER


@pytest.mark.parametrize("analysis,question", [(None, "hello"), (ANALYSIS, "   "), (ANALYSIS, "")])
async def test_preconditions_make_ask_a_no_op(make_invoker, analysis, question):
    transport = ScriptedTransport([])
    session = ChatSession(make_invoker(transport))
    transcript = initial_transcript()

    result = await session.ask(transcript, analysis, question)

    assert result is transcript
    assert len(transcript) == 1
    assert transport.requests == []


async def test_placeholder_is_visible_while_pending():
    release = asyncio.Event()

    class SlowInvoker:
        def build_request(self, payload, endpoint_kind):
            return payload

        async def invoke(self, request, *, on_quota_exhausted=None):
            await release.wait()
            return {"candidates": [{"content": {"parts": [{"text": "later"}]}}]}

    session = ChatSession(SlowInvoker())
    transcript = initial_transcript()
    task = asyncio.create_task(session.ask(transcript, ANALYSIS, "Now?"))
    await asyncio.sleep(0)

    assert [m.text for m in transcript] == [transcript[0].text, "Now?", PLACEHOLDER]

    release.set()
    await task
    assert transcript[-1].text == "later"


@pytest.mark.parametrize(
    "body",
    [
        {"candidates": "oops"},
        {"candidates": ["oops"]},
        {"candidates": [{"content": "text"}]},
        {"candidates": [{"content": {"parts": [42]}}]},
        ["not", "a", "dict"],
    ],
)
async def test_malformed_answer_body_uses_fallback(make_invoker, body):
    transport = ScriptedTransport([httpx.Response(200, json=body)])
    session = ChatSession(make_invoker(transport))
    transcript = initial_transcript()

    await session.ask(transcript, ANALYSIS, "Why?")

    assert len(transcript) == 3
    assert transcript[-1].text == FALLBACK_ANSWER


async def test_unexpected_error_still_resolves_placeholder():
    class BrokenInvoker:
        def build_request(self, payload, endpoint_kind):
            return payload

        async def invoke(self, request, *, on_quota_exhausted=None):
            raise RuntimeError("unexpected")

    transcript = initial_transcript()

    with pytest.raises(RuntimeError):
        await ChatSession(BrokenInvoker()).ask(transcript, ANALYSIS, "Why?")

    assert len(transcript) == 3
    assert transcript[-1].text == FALLBACK_ANSWER
    assert all(msg.text != PLACEHOLDER for msg in transcript)
