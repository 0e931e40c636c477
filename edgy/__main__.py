import argparse
import logging
import sys


def setup_logging(log_level: str = "INFO") -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


logger = logging.getLogger(__name__)


def main():
    """Main entry point for Edgy."""
    parser = argparse.ArgumentParser(description="Edgy - UX edge-case analysis API")
    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Interface to bind the API server to"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=3001,
        help="Port for the API server"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level"
    )
    parser.add_argument(
        "--knowledge-dir",
        type=str,
        default=None,
        help="Directory with rules/, flows/ and components/ YAML (overrides EDGY_KNOWLEDGE_DIR)"
    )
    args = parser.parse_args()

    setup_logging(args.log_level)

    from .core.config import get_settings
    settings = get_settings()
    if args.knowledge_dir:
        settings.knowledge_dir = args.knowledge_dir

    # Load rules up front so a broken knowledge dir fails at startup
    from .core.knowledge import load_knowledge
    knowledge = load_knowledge(settings.knowledge_dir)

    if not settings.anthropic_api_key and not settings.gemini_api_key:
        logger.warning("No server-side LLM keys set. AI review runs only when requests supply a key.")

    from .api.app import create_app
    app = create_app(settings=settings, knowledge=knowledge)

    import uvicorn

    logger.info(f"Starting FastAPI server on http://{args.host}:{args.port}")
    print(f"\n  Edgy is running at: http://localhost:{args.port}")
    print(f"  API docs at: http://localhost:{args.port}/docs\n")

    uvicorn.run(
        app,
        host=args.host,
        port=args.port,
        log_level=args.log_level.lower(),
    )


if __name__ == "__main__":
    main()
