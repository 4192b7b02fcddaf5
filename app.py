"""
Command line entry point.

    python app.py replay --audio answer.wav --events answer.jsonl [--output report.json]
    python app.py assess --report report.json [--words]
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from dotenv import load_dotenv

from audio.sources import ArraySource
from config import AppSettings
from speech.fluency import get_fluency_assessment
from speech.models import SpeechAnalysisResult
from speech.replay import ScriptedRecognitionEngine, load_script, replay_session
from speech.text_metrics import confidence_band
from utils.logging import setup_logging

logger = logging.getLogger(__name__)


def _cmd_replay(args: argparse.Namespace, settings: AppSettings) -> int:
    source = ArraySource.from_file(args.audio, sample_rate=settings.SAMPLE_RATE)
    engine = ScriptedRecognitionEngine(load_script(args.events), language=settings.RECOGNITION_LANGUAGE)

    def on_error(error: Exception) -> None:
        logger.warning(f"Session error: {error}")

    result = asyncio.run(replay_session(source, engine, settings=settings, on_error=on_error))
    if result is None:
        print("No speech recognized", file=sys.stderr)
        return 1

    report = result.model_dump_json(indent=2)
    if args.output:
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(report)
        logger.info(f"Report written to {args.output}")
    else:
        print(report)
    return 0


def _cmd_assess(args: argparse.Namespace, settings: AppSettings) -> int:
    with open(args.report, "r", encoding="utf-8") as f:
        result = SpeechAnalysisResult.model_validate_json(f.read())

    assessment = get_fluency_assessment(result.fluency_metrics)
    output = {
        "overall_clarity_score": result.overall_clarity_score,
        "assessment": assessment.model_dump(mode="json"),
    }
    if args.words:
        output["words"] = [
            {"word": w.word, "confidence": w.confidence, "band": confidence_band(w.confidence)}
            for w in result.word_confidences
        ]
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="On-device speech clarity analysis")
    sub = parser.add_subparsers(dest="command", required=True)

    replay = sub.add_parser("replay", help="Replay recorded audio and recognition events")
    replay.add_argument("--audio", required=True, help="Audio file (any format librosa can read)")
    replay.add_argument("--events", required=True, help="JSON-lines recognition script")
    replay.add_argument("--output", help="Write the report here instead of stdout")
    replay.set_defaults(func=_cmd_replay)

    assess = sub.add_parser("assess", help="Fluency assessment of a saved report")
    assess.add_argument("--report", required=True, help="Report JSON produced by replay")
    assess.add_argument("--words", action="store_true", help="Include per-word confidence bands")
    assess.set_defaults(func=_cmd_assess)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    settings = AppSettings()
    setup_logging(settings)

    args = build_parser().parse_args(argv)
    return args.func(args, settings)


if __name__ == "__main__":
    sys.exit(main())
