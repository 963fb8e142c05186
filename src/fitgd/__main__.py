from pathlib import Path
import logging
import os
import sys

from dotenv import load_dotenv

# Ensure the src directory is on sys.path when running as a script
_SRC_DIR = Path(__file__).resolve().parents[1]
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))

from rich.console import Console

from fitgd.bootstrap import create_turn_service
from fitgd.domain.errors import EngineError
from fitgd.presentation.console import render_notification
from fitgd.presentation.demo import run_demo

load_dotenv()


def _print_help_surface() -> None:
    print("\nHelp:")
    print("- Set FITGD_DATABASE_URL to persist history, or unset it to use in-memory mode.")
    print("- FITGD_DICE_SEED makes the demo rolls repeatable.")
    print("- FITGD_LOG_LEVEL=DEBUG shows every committed command batch.")


def _configure_logging() -> None:
    level = os.getenv("FITGD_LOG_LEVEL", "WARNING").strip().upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def main():
    _configure_logging()
    console = Console()
    try:
        service = create_turn_service(sink=lambda notification: render_notification(console, notification))
        run_demo(service, console)
    except KeyboardInterrupt:
        print("\nSession ended.")
    except EngineError as exc:
        print("The turn could not be resolved. The session closed safely.")
        print(f"Reason: {exc}")
        _print_help_surface()
    except Exception as exc:
        print("An unexpected error occurred. The session closed safely.")
        print(f"Reason: {exc}")
        _print_help_surface()


if __name__ == "__main__":
    main()
