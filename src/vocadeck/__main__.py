"""Command line entry point for vocadeck."""
import argparse
import logging
import sys
from typing import List, Optional

from vocadeck.config import settings
from vocadeck.errors import VocadeckError
from vocadeck.logging_config import setup_logging
from vocadeck.models.base import SessionLocal, init_db
from vocadeck.models.srs_models import CardType
from vocadeck.monitoring import start_monitoring
from vocadeck.services.study_service import StudyService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vocadeck", description="Vocabulary deck scheduler")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init-db", help="Create database tables")

    queues = subparsers.add_parser("queues", help="Show the queues of a deck for a user")
    queues.add_argument("user_id")
    queues.add_argument("deck_id")

    metrics = subparsers.add_parser("metrics", help="Show progress buckets of a deck for a user")
    metrics.add_argument("user_id")
    metrics.add_argument("deck_id")

    stats = subparsers.add_parser("stats", help="Show recent study statistics for a user")
    stats.add_argument("user_id")

    decks = subparsers.add_parser("decks", help="Show progress of a user in every active deck")
    decks.add_argument("user_id")

    check = subparsers.add_parser("check", help="Check a typed answer for a word")
    check.add_argument("word_id", type=int)
    check.add_argument("answer")
    check.add_argument(
        "--card-type",
        choices=[card_type.value for card_type in CardType],
        default=CardType.RECOGNITION.value,
    )

    return parser


def run(args: argparse.Namespace) -> None:
    """Run one command against the configured database."""
    init_db()
    if args.command == "init-db":
        logger.info(f"Database initialized at {settings.database.url}")
        return

    db = SessionLocal()
    try:
        service = StudyService(db)
        if args.command == "queues":
            queues = service.load_queues(args.user_id, args.deck_id)
            for name in ("unseen", "review", "practice", "near_future"):
                words = getattr(queues, name)
                print(f"{name}: {len(words)}")
                for word in words:
                    print(f"  {word.id}\t{word.french_word}\t{word.english_translation}")
        elif args.command == "metrics":
            metrics = service.load_metrics(args.user_id, args.deck_id)
            for name in ("unseen", "leeches", "learning", "strengthening", "consolidating", "mastered"):
                print(f"{name}: {getattr(metrics, name)}")
        elif args.command == "stats":
            stats = service.session_stats(args.user_id)
            print(f"today: {stats.reviews_today}")
            print(f"7 days: {stats.reviews_7_days}")
            print(f"30 days: {stats.reviews_30_days}")
        elif args.command == "decks":
            for deck_id, progress in service.deck_progress(args.user_id).items():
                print(
                    f"{deck_id}\tlearned={progress.words_learned}\tmastered={progress.words_mastered}"
                    f"\treviews={progress.total_reviews}\tstreak={progress.current_streak}"
                )
        elif args.command == "check":
            correct = service.check_answer(args.word_id, args.answer, CardType(args.card_type))
            print("correct" if correct else "incorrect")
    finally:
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging("Starting vocadeck ...")

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
        logger.info(f"Metrics exported on port {settings.monitoring.port}")

    try:
        run(args)
    except (VocadeckError, ValueError) as e:
        logger.error(f"Command {args.command} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
