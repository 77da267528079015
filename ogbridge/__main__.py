"""
ogbridge entry point.

Run with: python -m ogbridge [options]
"""

from __future__ import annotations
import logging
import sys
from typing import Optional, Sequence

from .config import Config, setup_logging
from .api import OurGroceriesClient
from .meal_plan import IngredientSuggester
from .webui import create_app


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the bridge server.

    Args:
        argv: Command line arguments (defaults to sys.argv)

    Returns:
        Exit code (0 for success)
    """
    try:
        config = Config.from_env_and_cli(argv)
    except SystemExit:
        return 1
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.debug)

    client = OurGroceriesClient(config.username, config.password)

    suggester = None
    if config.anthropic_api_key:
        suggester = IngredientSuggester(api_key=config.anthropic_api_key)
        logging.info("Meal plan ingredient suggestions: Enabled")
    else:
        logging.info("Meal plan ingredient suggestions: Disabled (no ANTHROPIC_API_KEY)")

    if not config.api_key:
        logging.warning("No API key set; the bridge accepts unauthenticated requests.")

    app = create_app(client, api_key=config.api_key, suggester=suggester)

    logging.info("OurGroceries bridge listening on %s:%d", config.host, config.port)
    try:
        app.run(host=config.host, port=config.port, debug=False, threaded=True)
    except KeyboardInterrupt:
        logging.info("\nInterrupted by user")

    return 0


if __name__ == "__main__":
    sys.exit(main())
