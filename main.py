"""
Exam Prep Service - Main Entry Point
====================================
Starts the Flask-based HTTP service.

Usage:
    python main.py                    # Default: 0.0.0.0:5000
    python main.py --port 8000        # Custom port
    python main.py --debug            # Debug mode
"""

import argparse
import logging

from dotenv import load_dotenv

from examprep.server import app, create_app

logging.basicConfig(
    level=logging.INFO,
    format="[%(asctime)s] %(levelname)-8s %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Exam Prep Service")
    parser.add_argument("--host", default="0.0.0.0", help="Bind host")
    parser.add_argument("--port", type=int, default=5000, help="Bind port")
    parser.add_argument("--debug", action="store_true", help="Debug mode")
    args = parser.parse_args()

    load_dotenv()

    # create_app() builds the text generator from the environment
    logger.info("Creating Flask app...")
    create_app()

    ai_enabled = app.config.get("TEXT_GENERATOR") is not None
    logger.info(f"AI endpoints: {'enabled' if ai_enabled else 'disabled'}")
    logger.info(f"Starting server on {args.host}:{args.port}")
    app.run(host=args.host, port=args.port, debug=args.debug)


if __name__ == "__main__":
    main()
