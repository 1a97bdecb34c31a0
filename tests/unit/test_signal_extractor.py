"""
Unit tests for signal extraction (LLM primary, local parser fallback).

The chat model is a MagicMock; nothing reaches the network.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from src.common.config import Config
from src.common.error_handling import UpstreamMalformedError
from src.services.signal_extractor import LLMSignalExtractor, SignalExtractor

RESUME = "Jane Doe\nRegina, SK\n\nWelder at Steelworks 2015 - Present\nMIG and TIG welding, safety."


def _llm_returning(content):
    llm = MagicMock()
    llm.invoke.return_value = MagicMock(content=content)
    return llm


def _llm_raising(error):
    llm = MagicMock()
    llm.invoke.side_effect = error
    return llm


class TestLLMSignalExtractor:
    """Tests for the LLM strategy."""

    @pytest.mark.asyncio
    async def test_parses_keywords_and_location(self):
        llm = _llm_returning(json.dumps({
            "keywords": ["Welder", "MIG welding", "welder"],
            "location": "Regina, SK",
            "locations": ["Regina, SK"],
        }))
        extractor = LLMSignalExtractor(llm=llm, retry_attempts=1)

        signals = await extractor.extract(RESUME)

        assert signals.keywords == ["welder", "mig welding"]
        assert signals.location == "Regina, SK"
        assert signals.extraction_method == "llm"
        llm.invoke.assert_called_once()

    @pytest.mark.asyncio
    async def test_handles_fenced_output(self):
        llm = _llm_returning('Sure!\n```json\n{"keywords": ["welder"], "location": "Regina, SK"}\n```')
        signals = await LLMSignalExtractor(llm=llm, retry_attempts=1).extract(RESUME)
        assert signals.keywords == ["welder"]

    @pytest.mark.asyncio
    async def test_location_falls_back_to_resume_text(self):
        llm = _llm_returning('{"keywords": ["welder"], "location": null}')
        signals = await LLMSignalExtractor(llm=llm, retry_attempts=1).extract(RESUME)
        assert signals.location == "Regina, SK"

    @pytest.mark.asyncio
    async def test_malformed_output_raises(self):
        llm = _llm_returning("I could not read this resume.")
        with pytest.raises(UpstreamMalformedError):
            await LLMSignalExtractor(llm=llm, retry_attempts=1).extract(RESUME)

    @pytest.mark.asyncio
    async def test_no_keywords_raises(self):
        llm = _llm_returning('{"keywords": [], "location": "Regina, SK"}')
        with pytest.raises(UpstreamMalformedError):
            await LLMSignalExtractor(llm=llm, retry_attempts=1).extract(RESUME)

    @pytest.mark.asyncio
    async def test_long_resume_truncated(self):
        llm = _llm_returning('{"keywords": ["welder"]}')
        await LLMSignalExtractor(llm=llm, retry_attempts=1).extract("welder " * 5000)

        messages = llm.invoke.call_args[0][0]
        assert len(messages[1].content) < 13000

    def test_unavailable_without_key(self):
        with patch.object(Config, "PERPLEXITY_API_KEY", ""):
            assert LLMSignalExtractor().available is False


class TestSignalExtractor:
    """Tests for the fallback chain."""

    @pytest.mark.asyncio
    async def test_llm_success(self):
        llm = _llm_returning('{"keywords": ["welder"], "location": "Regina, SK"}')
        extractor = SignalExtractor(llm_extractor=LLMSignalExtractor(llm=llm, retry_attempts=1))

        signals = await extractor.extract(RESUME)

        assert signals.extraction_method == "llm"

    @pytest.mark.asyncio
    async def test_llm_failure_falls_back_to_local(self):
        llm = _llm_raising(RuntimeError("provider down"))
        extractor = SignalExtractor(llm_extractor=LLMSignalExtractor(llm=llm, retry_attempts=1))

        signals = await extractor.extract(RESUME)

        assert signals.extraction_method == "local"
        assert "welder" in signals.keywords
        assert signals.location == "Regina, SK"

    @pytest.mark.asyncio
    async def test_malformed_llm_output_falls_back_to_local(self):
        llm = _llm_returning("no json here")
        extractor = SignalExtractor(llm_extractor=LLMSignalExtractor(llm=llm, retry_attempts=1))

        signals = await extractor.extract(RESUME)

        assert signals.extraction_method == "local"

    @pytest.mark.asyncio
    async def test_no_api_key_skips_llm(self):
        with patch.object(Config, "PERPLEXITY_API_KEY", ""):
            extractor = SignalExtractor(llm_extractor=LLMSignalExtractor())
            signals = await extractor.extract(RESUME)

        assert signals.extraction_method == "local"

    @pytest.mark.asyncio
    async def test_empty_text_never_raises(self):
        signals = await SignalExtractor().extract("")
        assert signals.keywords == []
        assert signals.extraction_method == "none"

    @pytest.mark.asyncio
    async def test_nothing_extractable(self):
        llm = _llm_raising(RuntimeError("provider down"))
        extractor = SignalExtractor(llm_extractor=LLMSignalExtractor(llm=llm, retry_attempts=1))

        signals = await extractor.extract("Lorem ipsum dolor sit amet")

        assert signals.keywords == []
        assert signals.extraction_method == "none"
