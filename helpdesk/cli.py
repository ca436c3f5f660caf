#!/usr/bin/env python3
"""
Helpdesk CLI

Usage:
    helpdesk "How do I reset my password?"
    helpdesk --interactive
    helpdesk --json "How do I reset my password?"
    helpdesk --config config/app.yaml --interactive
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from typing import List, Optional

from dotenv import load_dotenv

from helpdesk.config.settings import load_config
from helpdesk.engine import FinalAnswer, HelpdeskEngine
from helpdesk.exceptions.exceptions import ConfigurationError, KnowledgeBaseError, log_exception

logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit", "q"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="helpdesk", description="Ask the helpdesk engine a question.")
    parser.add_argument("question", nargs="?", help="Question to ask (omit with --interactive)")
    parser.add_argument("--interactive", "-i", action="store_true", help="Ask questions in a loop")
    parser.add_argument("--json", action="store_true", help="Print answers as JSON")
    parser.add_argument("--config", help="Config file (defaults to APP_CONFIG_PATH)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def format_answer(answer: FinalAnswer, as_json: bool = False) -> str:
    if as_json:
        return json.dumps(answer.to_dict(), indent=2)

    lines = [
        "=" * 70,
        f"ANSWER:\n{answer.answer_text}",
        "=" * 70,
        f"SOURCE: {answer.source.value}",
        f"CONFIDENCE: {answer.confidence:.0%}",
        f"ACTION: {answer.action.value}",
        f"PROVIDER TIME: {answer.elapsed_ms}ms",
    ]
    if answer.escalate:
        lines.append("ESCALATION: a support agent should follow up")
    lines.append("=" * 70)
    return "\n".join(lines)


async def run_interactive(engine: HelpdeskEngine, as_json: bool) -> int:
    print("Interactive mode - type 'exit' to quit\n")
    while True:
        try:
            question = input("Question: ").strip()
        except (EOFError, KeyboardInterrupt):
            print("\nGoodbye!")
            return 0

        if question.lower() in EXIT_COMMANDS:
            print("Goodbye!")
            return 0
        if not question:
            continue

        start = time.perf_counter()
        answer = await engine.resolve(question)
        total_ms = (time.perf_counter() - start) * 1000
        print(format_answer(answer, as_json))
        if not as_json:
            print(f"Total: {total_ms:.0f}ms\n")


async def run(args: argparse.Namespace) -> int:
    try:
        config = load_config(args.config)
        engine = HelpdeskEngine().init(config)
    except (ConfigurationError, KnowledgeBaseError) as e:
        log_exception(e, logger, {"phase": "init"})
        print(f"Initialization failed: {e}", file=sys.stderr)
        return 2

    try:
        if args.interactive:
            return await run_interactive(engine, args.json)

        answer = await engine.resolve(args.question.strip())
        print(format_answer(answer, args.json))
        return 0
    finally:
        await engine.close()


def main(argv: Optional[List[str]] = None) -> int:
    # Force load environment
    load_dotenv(override=True)

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    if not args.interactive and not (args.question and args.question.strip()):
        parser.print_usage(sys.stderr)
        print("error: a question is required unless --interactive is given", file=sys.stderr)
        return 1

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
