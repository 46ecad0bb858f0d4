"""FastAPI dependencies: DB session and the ingestion pipeline."""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from pixel_relay.db.session import async_session_factory
from pixel_relay.services.ingestion import IngestionPipeline


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async DB session. Commits on success, rolls back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def get_pipeline(request: Request) -> IngestionPipeline:
    """Return the pipeline wired at startup (overridable in tests)."""
    return request.app.state.pipeline
