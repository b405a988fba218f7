"""Application entrypoint — start the backend, or play a headless run."""

from __future__ import annotations

import argparse
import asyncio
import sys

import uvicorn

from mood_bubbles.config import get_settings
from mood_bubbles.logger import setup_logging
from mood_bubbles.models import Emotion, GameMode


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="mood-bubbles",
        description="Affect-adaptive bubble popping game: headless runner and leaderboard backend.",
    )
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log lines even on a TTY.")
    sub = parser.add_subparsers(dest="command")

    # ── serve ─────────────────────────────────────────────────
    serve_parser = sub.add_parser("serve", help="Start the API server.")
    serve_parser.add_argument("--host", default=None)
    serve_parser.add_argument("--port", type=int, default=None)
    serve_parser.add_argument("--reload", action="store_true")

    # ── init-db ───────────────────────────────────────────────
    sub.add_parser("init-db", help="Create database tables.")

    # ── play ──────────────────────────────────────────────────
    play_parser = sub.add_parser("play", help="Play one headless run and print its summary.")
    play_parser.add_argument("--mode", choices=[m.value for m in GameMode], default=None)
    play_parser.add_argument("--duration", type=float, default=None, help="Run length in seconds.")
    play_parser.add_argument("--seed", type=int, default=None)
    play_parser.add_argument("--fps", type=int, default=None)
    play_parser.add_argument(
        "--mood",
        choices=[e.value for e in Emotion],
        default=Emotion.NEUTRAL.value,
        help="Mood the synthetic face provider leans toward (bio mode).",
    )
    play_parser.add_argument("--device-id", default="cli")
    play_parser.add_argument("--report", action="store_true", help="Deliver the summary to the configured sinks.")

    args = parser.parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, json=True if args.log_json else None)

    if args.command == "serve":
        uvicorn.run(
            "mood_bubbles.api.server:app",
            host=args.host or settings.api_host,
            port=args.port or settings.api_port,
            reload=args.reload,
        )
    elif args.command == "init-db":
        from mood_bubbles.storage.database import dispose_engine, init_db

        async def _create_tables() -> None:
            await init_db()
            await dispose_engine()

        asyncio.run(_create_tables())
        print("Database tables created.")
    elif args.command == "play":
        import random

        from mood_bubbles.game.runner import run_headless
        from mood_bubbles.reporting import create_dispatcher
        from mood_bubbles.streaming.providers import SyntheticMoodProvider

        provider = SyntheticMoodProvider(Emotion(args.mood), rng=random.Random(args.seed))
        summary = asyncio.run(
            run_headless(
                GameMode(args.mode or settings.default_mode),
                duration=args.duration,
                fps=args.fps,
                seed=args.seed,
                provider=provider,
                dispatcher=create_dispatcher(settings) if args.report else None,
                device_id=args.device_id,
            )
        )
        print(summary.model_dump_json(indent=2))
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
