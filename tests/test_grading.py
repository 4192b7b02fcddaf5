"""
Tests for the remote grading payload.
"""

import json

import pytest

from speech.grading import build_grading_payload, build_segment_summary, build_segment_transcript
from speech.models import WordConfidence
from speech.session import create_empty_speech_analysis_result

from _helpers import analysis_from, make_frames


@pytest.fixture
def segment_result():
    placeholder = create_empty_speech_analysis_result()
    return placeholder.model_copy(update={
        "raw_transcript": "I think so",
        "cleaned_transcript": "I think so",
        "word_confidences": [
            WordConfidence(word="I", confidence=80),
            WordConfidence(word="think", confidence=80),
            WordConfidence(word="so", confidence=80),
        ],
        "audio_analysis": analysis_from(make_frames("VVVSV")),
        "duration_ms": 2500,
        "overall_clarity_score": 64,
    })


class TestGradingPayload:

    def test_payload_has_no_frames(self, segment_result):
        payload = build_grading_payload("test-1", "user-1", {"part1-q1": segment_result})

        data = json.loads(payload.model_dump_json())

        assert set(data["transcripts"]) == {"part1-q1"}
        segment = data["transcripts"]["part1-q1"]
        assert "audio_analysis" not in segment
        assert "frames" not in json.dumps(data)
        assert segment["raw_transcript"] == "I think so"
        assert segment["overall_clarity_score"] == 64
        assert data["fluency_flag"] is False

    def test_optional_hints(self, segment_result):
        payload = build_grading_payload(
            "test-1", "user-1", {"part2": segment_result},
            topic="travel", difficulty="B2", fluency_flag=True
        )

        assert payload.topic == "travel"
        assert payload.difficulty == "B2"
        assert payload.fluency_flag is True

    def test_requires_segments(self):
        with pytest.raises(ValueError):
            build_grading_payload("test-1", "user-1", {})

    def test_requires_identifiers(self, segment_result):
        with pytest.raises(ValueError):
            build_grading_payload("", "user-1", {"part1": segment_result})


class TestSegmentSummary:

    def test_summary_lines(self, segment_result):
        segment = build_segment_transcript(segment_result)

        summary = build_segment_summary("part1-q1", segment, "Where do you live?")

        assert summary.splitlines() == [
            "### PART1-Q1",
            "Question: Where do you live?",
            "Transcript: \"I think so\"",
            "Duration: 3s | WPM: 0",
            "Fillers: 0 | Pauses: 0",
            "Clarity Score: 64% | Pitch Variation: 0%",
        ]

    def test_unknown_question(self, segment_result):
        summary = build_segment_summary("p3", build_segment_transcript(segment_result))
        assert "Question: Unknown" in summary
