"""Command line interface for running and managing the Nodeflow server."""

import sys
import argparse

from .config import (
    AppConfig,
    LogLevel,
    load_config,
    get_development_config,
    get_testing_config,
    validate_config
)
from .core.logging import get_logger, setup_logging


def create_argument_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        prog="nodeflow",
        description="Nodeflow - run low-code workflow graphs over HTTP"
    )

    # Server configuration
    parser.add_argument(
        "--host",
        help="Host to bind the server to (default: 0.0.0.0)"
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port to bind the server to (default: 8000)"
    )
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )

    # Environment configuration
    parser.add_argument(
        "--env",
        choices=["development", "testing"],
        help="Environment configuration preset"
    )
    parser.add_argument(
        "--config",
        help="Path to a .env configuration file"
    )

    # Logging configuration
    parser.add_argument(
        "--log-level",
        choices=[level.value for level in LogLevel],
        help="Logging level"
    )
    parser.add_argument(
        "--check-config",
        action="store_true",
        help="Validate the configuration and exit"
    )

    # Commands
    subparsers = parser.add_subparsers(dest="command", help="Available commands")
    subparsers.add_parser("run", help="Run the workflow server")

    db_parser = subparsers.add_parser("db", help="Run history database commands")
    db_subparsers = db_parser.add_subparsers(dest="db_command", help="Database commands")
    db_subparsers.add_parser("init", help="Create run history tables")
    db_subparsers.add_parser("reset", help="Drop and recreate run history tables")

    config_parser = subparsers.add_parser("config", help="Configuration management")
    config_subparsers = config_parser.add_subparsers(dest="config_command", help="Config commands")
    config_subparsers.add_parser("show", help="Show current configuration")

    return parser


def load_configuration(args: argparse.Namespace) -> AppConfig:
    """Load configuration based on command line arguments."""
    if args.env == "development":
        config = get_development_config()
    elif args.env == "testing":
        config = get_testing_config()
    else:
        config = load_config(args.config)

    # Command line arguments win over presets and environment
    if args.host:
        config.host = args.host
    if args.port:
        config.port = args.port
    if args.reload:
        config.reload = True
    if args.log_level:
        config.log_level = LogLevel(args.log_level)

    return config


def run_server(config: AppConfig):
    """Run the workflow server."""
    import uvicorn
    from .factory import create_app

    logger = get_logger(__name__)
    uvicorn_config = config.get_uvicorn_config()

    if config.reload:
        # reload needs an import string; the app re-reads its config from the environment
        logger.info("Starting server with auto-reload")
        uvicorn.run("nodeflow.main:app", **uvicorn_config)
    else:
        logger.info(f"Starting server on {config.host}:{config.port}")
        uvicorn.run(create_app(config), **uvicorn_config)


def run_database_command(command: str, config: AppConfig):
    """Run run-history database commands."""
    from .storage.database import create_database_engine, create_tables, drop_tables

    logger = get_logger(__name__)
    engine = create_database_engine(
        config.database_url,
        echo=config.database_echo,
        connect_args=config.get_database_connect_args()
    )
    try:
        if command == "reset":
            logger.info("Dropping run history tables...")
            drop_tables(engine)
        logger.info("Creating run history tables...")
        create_tables(engine)
        logger.info("Run history tables ready")
    finally:
        engine.dispose()


def show_configuration(config: AppConfig):
    """Show current configuration."""
    print("Current Configuration:")
    print(f"  App Name: {config.app_name}")
    print(f"  Version: {config.app_version}")
    print(f"  Debug: {config.debug}")
    print(f"  Host: {config.host}")
    print(f"  Port: {config.port}")
    print(f"  Run History: {config.enable_run_history}")
    print(f"  Database URL: {config.database_url}")
    print(f"  Log Level: {config.log_level.value}")
    print(f"  Node Timeout: {config.node_timeout}")
    print(f"  Branch Skip Policy: {config.branch_skip_policy.value}")
    print(f"  Strict Edges: {config.strict_edges}")
    print(f"  LLM API URL: {config.llm_api_url}")
    print(f"  OpenAI Key Configured: {bool(config.openai_api_key)}")


def validate_configuration_command(config: AppConfig):
    """Validate configuration and show results."""
    try:
        validate_config(config)
    except ValueError as e:
        print("Configuration validation: FAILED")
        print(f"Error: {e}")
        sys.exit(1)
    print("Configuration validation: PASSED")
    print("All configuration settings are valid.")


def main(argv=None):
    """Main entry point for the application."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config = load_configuration(args)
    except ValueError as e:
        print(f"Error: {e}")
        sys.exit(1)

    if args.check_config:
        validate_configuration_command(config)
        return

    setup_logging(level=config.log_level.value, log_file=config.log_file, structured=config.log_structured)

    try:
        validate_config(config)

        if args.command == "run" or args.command is None:
            run_server(config)
        elif args.command == "db":
            if not args.db_command:
                print("Database command required. Use --help for options.")
                sys.exit(1)
            run_database_command(args.db_command, config)
        elif args.command == "config":
            if args.config_command != "show":
                print("Configuration command required. Use --help for options.")
                sys.exit(1)
            show_configuration(config)
        else:
            parser.print_help()
    except Exception as e:
        print(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
