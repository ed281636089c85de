"""Application factory for creating FastAPI instances."""

from typing import Optional
import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from sqlalchemy.exc import SQLAlchemyError

from .config import AppConfig, get_config, validate_config
from .core.action_registry import ActionRegistry
from .core.ai_service import AIService
from .core.exceptions import ConfigurationError
from .core.execution_engine import ExecutionEngine
from .core.logging import setup_logging, get_logger
from .core.middleware import ErrorHandlingMiddleware
from .core.webhook_registry import WebhookRegistry
from .handlers import MailClient, register_default_handlers
from .storage.database import create_database_engine, create_session_factory, create_tables
from .storage.run_store import RunStore
from .api.endpoints import router, init_dependencies
from .api.webhooks import router as webhook_router
from .api.llm import router as llm_router


logger = get_logger(__name__)


class ApplicationState:
    """Container for application state and components."""

    def __init__(self):
        self.config: Optional[AppConfig] = None
        self.action_registry: Optional[ActionRegistry] = None
        self.execution_engine: Optional[ExecutionEngine] = None
        self.webhook_registry: Optional[WebhookRegistry] = None
        self.run_store: Optional[RunStore] = None
        self.ai_service: Optional[AIService] = None
        self.database_engine = None


def initialize_run_store(config: AppConfig) -> tuple:
    """Create the database engine and run store when run history is enabled."""
    if not config.enable_run_history:
        logger.info("Run history disabled")
        return None, None

    try:
        engine = create_database_engine(
            config.database_url,
            echo=config.database_echo,
            connect_args=config.get_database_connect_args()
        )
        create_tables(engine)
    except SQLAlchemyError as e:
        logger.error(f"Database initialization failed: {e}")
        raise ConfigurationError(f"Database initialization failed: {e}", config_key="database_url") from e

    logger.info("Run history database initialized")
    return engine, RunStore(create_session_factory(engine))


def create_ai_service(config: AppConfig) -> AIService:
    """Create the built-in LLM service from configuration."""
    if not config.openai_api_key:
        logger.info("No OpenAI API key configured; built-in LLM service disabled")
    return AIService(
        config.openai_api_key,
        default_model=config.llm_default_model,
        max_tokens=config.openai_max_tokens,
        temperature=config.openai_temperature
    )


def initialize_core_components(
    config: AppConfig,
    mail_client: Optional[MailClient] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ai_service: Optional[AIService] = None
) -> tuple:
    """Initialize the registry, engine, webhook store and LLM service."""
    ai_service = ai_service or create_ai_service(config)
    action_registry = ActionRegistry()
    register_default_handlers(
        action_registry,
        config,
        mail_client=mail_client,
        http_transport=http_transport,
        ai_service=ai_service
    )

    execution_engine = ExecutionEngine(
        action_registry,
        node_timeout=config.node_timeout,
        branch_skip_policy=config.branch_skip_policy,
        strict_edges=config.strict_edges
    )

    logger.info("Core components initialized")
    return action_registry, execution_engine, WebhookRegistry(), ai_service


def create_lifespan_handler(
    config: AppConfig,
    state: ApplicationState,
    mail_client: Optional[MailClient] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ai_service: Optional[AIService] = None
):
    """Create the application lifespan handler."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup
        setup_logging(
            level=config.log_level.value,
            log_file=config.log_file,
            log_format=config.log_format,
            structured=config.log_structured,
            max_size=config.log_max_size,
            backup_count=config.log_backup_count
        )
        logger.info(f"Starting {config.app_name} v{config.app_version}")

        database_engine, run_store = initialize_run_store(config)
        action_registry, execution_engine, webhook_registry, llm_service = initialize_core_components(
            config,
            mail_client=mail_client,
            http_transport=http_transport,
            ai_service=ai_service
        )

        state.config = config
        state.action_registry = action_registry
        state.execution_engine = execution_engine
        state.webhook_registry = webhook_registry
        state.run_store = run_store
        state.database_engine = database_engine
        state.ai_service = llm_service
        app.state.nodeflow = state

        init_dependencies(
            execution_engine=execution_engine,
            action_registry=action_registry,
            webhook_registry=webhook_registry,
            run_store=run_store,
            ai_service=llm_service
        )

        logger.info("Application startup completed successfully")

        yield

        # Shutdown
        logger.info(f"Shutting down {config.app_name}")
        webhook_registry.clear()
        if database_engine is not None:
            database_engine.dispose()

    return lifespan


def create_app(
    config: Optional[AppConfig] = None,
    mail_client: Optional[MailClient] = None,
    http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ai_service: Optional[AIService] = None
) -> FastAPI:
    """Create and configure FastAPI application instance.

    Args:
        config: Application config; loaded from the environment when omitted
        mail_client: Mailbox used by gmail nodes
        http_transport: Transport override for outbound HTTP (used by tests)
        ai_service: Built-in LLM service; built from the OpenAI settings when omitted
    """
    if config is None:
        config = get_config()

    validate_config(config)

    state = ApplicationState()

    app = FastAPI(
        title=config.app_name,
        description="A low-code workflow engine that runs node graphs in dependency order",
        version=config.app_version,
        debug=config.debug,
        lifespan=create_lifespan_handler(config, state, mail_client, http_transport, ai_service)
    )

    if config.cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=config.cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_middleware(ErrorHandlingMiddleware)

    app.include_router(router)
    app.include_router(webhook_router)
    app.include_router(llm_router)

    add_health_endpoints(app, config)

    return app


def add_health_endpoints(app: FastAPI, config: AppConfig) -> None:
    """Add health check endpoints to the application."""

    @app.get("/")
    async def root():
        """Root endpoint for basic health check."""
        return {"message": f"{config.app_name} is running", "version": config.app_version}

    @app.get("/health")
    async def health_check():
        """Basic health check endpoint."""
        return {
            "status": "healthy",
            "service": config.app_name.lower().replace(" ", "-"),
            "version": config.app_version,
            "runHistory": config.enable_run_history
        }
