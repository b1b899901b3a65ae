"""Main entry point for the Number Pool Service."""

import argparse
import asyncio

import uvicorn
from number_pool_service.bootstrap import setup_admin
from number_pool_service.config.settings import settings
from number_pool_service.config.logging import setup_logging


def serve():
    """Run the FastAPI application."""
    uvicorn.run(
        "number_pool_service.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        log_config=None,  # Use our custom logging configuration
    )


def main(argv=None):
    parser = argparse.ArgumentParser(description="Number Pool Service")
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=["serve", "setup-admin"],
        help="serve the HTTP API (default) or create the admin account once"
    )
    args = parser.parse_args(argv)

    setup_logging()

    if args.command == "setup-admin":
        result = asyncio.run(setup_admin())
        print(f"{result.message}: {result.user_id}")
        return

    serve()


if __name__ == "__main__":
    main()
