from contextlib import asynccontextmanager

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.api.routes import dashboard, notifications, ping, tickets, users
from app.core.config import Settings, get_settings
from app.core.logging import configure_logging, init_tracer, shutdown_tracer
from app.services.postgres import PostgresConnectionTester, to_sqlalchemy_dsn
from app.tickets.errors import BackendUnavailableError
from app.tickets.memory import InMemoryTicketRepository
from app.tickets.repository import TicketRepository
from app.tickets.seed import load_seed_file
from app.tickets.service import TicketService
from app.tickets.sql import SqlTicketRepository
from app.tickets.views import TicketViews


def build_ticket_components(settings: Settings, repository: TicketRepository) -> tuple[TicketService, TicketViews]:
    service = TicketService(repository)
    views = TicketViews(
        repository,
        needs_ack_limit=settings.needs_ack_limit,
        pending_actions_limit=settings.pending_actions_limit,
    )
    return service, views


@asynccontextmanager
async def lifespan(app: FastAPI):  # pragma: no cover - executed by framework
    settings = get_settings()
    logger = configure_logging(settings)
    tracer_provider = init_tracer(settings)

    app.state.logger = logger
    app.state.tracer_provider = tracer_provider
    app.state.ticket_service = None
    app.state.ticket_views = None
    app.state.postgres_tester = None
    db_engine = None

    if settings.use_mock_data:
        repository = InMemoryTicketRepository.from_seed_file(settings.seed_path)
        app.state.ticket_service, app.state.ticket_views = build_ticket_components(settings, repository)
        logger.info("Serving tickets from mock data at %s", settings.seed_path)
    else:
        app.state.postgres_tester = PostgresConnectionTester(dsn=settings.postgres_dsn)
        db_engine = create_async_engine(to_sqlalchemy_dsn(settings.postgres_dsn), future=True)
        session_factory = async_sessionmaker(db_engine, expire_on_commit=False)
        repository = SqlTicketRepository(session_factory, engine=db_engine)
        try:
            await repository.ensure_schema()
            if settings.seed_on_startup:
                imported = await repository.add_tickets(load_seed_file(settings.seed_path))
                logger.info("Seeded %d tickets from %s", imported, settings.seed_path)
        except BackendUnavailableError as exc:
            logger.warning("Ticket database unavailable at startup, ticket routes disabled: %s", exc)
        else:
            app.state.ticket_service, app.state.ticket_views = build_ticket_components(settings, repository)
    try:
        yield
    finally:
        if db_engine is not None:
            await db_engine.dispose()
        if app.state.postgres_tester is not None:
            await app.state.postgres_tester.close()
        shutdown_tracer(tracer_provider)


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title=settings.app_name, lifespan=lifespan)
    app.include_router(ping.router)
    app.include_router(users.router)
    app.include_router(tickets.router)
    app.include_router(dashboard.router)
    app.include_router(notifications.router)
    return app


app = create_app()
