"""
Policyledger main application entry point.
"""

import asyncio
import logging
from pathlib import Path
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI

from policyledger.config import load_config, Config
from policyledger.models import create_warehouse_engine
from policyledger.services.metadata import MetadataManager
from policyledger.services.policy import PolicyService
from policyledger.services.warehouse import WarehouseClient
from policyledger.api import policies as policies_api


logger = logging.getLogger(__name__)


def create_app(config: Config) -> FastAPI:
    """Create the policy FastAPI application."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        logger.info("Starting policyledger server...")

        # One engine and one metadata client for the whole process
        client = WarehouseClient(create_warehouse_engine(config.warehouse))
        metadata_manager = MetadataManager(config.metadata)
        policy_service = PolicyService(
            client, metadata_manager, config.warehouse, config.policies
        )

        app.state.policy_service = policy_service

        if not metadata_manager.enabled:
            logger.warning("No metadata manager configured, metadata refresh is disabled")
        logger.info(f"Policy service ready, dataset {config.warehouse.dataset_id}")

        yield

        # Shutdown
        logger.info("Shutting down policyledger server...")
        await policy_service.drain()
        await metadata_manager.close()
        await client.close()

    app = FastAPI(
        title="Policyledger",
        description="Append-only policy store over a data warehouse",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.include_router(policies_api.router)

    return app


async def run_server(config: Config):
    """Run the policy API server."""
    app = create_app(config)

    server_config = uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )
    server = uvicorn.Server(server_config)

    logger.info(f"Policy server: http://{config.server.host}:{config.server.port}")

    await server.serve()


def cmd_serve(args):
    """Run the policy API server."""
    config_path = Path(getattr(args, "config", None) or "config.yaml")
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}")
        print("Please create a config.yaml file or specify a different path with -c")
        return 1

    config = load_config(config_path)

    # Setup logging
    logging.basicConfig(
        level=getattr(logging, config.logging.level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        asyncio.run(run_server(config))
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")

    return 0


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Policyledger policy API",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # serve command (default)
    serve_parser = subparsers.add_parser("serve", help="Run the policy API server")
    serve_parser.add_argument(
        "-c", "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )

    args = parser.parse_args()

    # Default to serve if no command specified
    if args.command is None:
        args.command = "serve"

    if args.command == "serve":
        return cmd_serve(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    exit(main())
