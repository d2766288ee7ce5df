"""FastAPI dependencies for dependency injection."""

from collections.abc import AsyncGenerator
from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.config import Settings, get_settings
from ph_payroll.context import RequestContext
from ph_payroll.database import get_session


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session dependency (commits on success)."""
    async with get_session() as session:
        yield session


def _parse_uuid(value: str | None, header: str) -> UUID:
    if not value:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"{header} header is required",
        )
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {header} format",
        ) from None


async def get_request_context(
    x_company_id: Annotated[str | None, Header()] = None,
    x_user_id: Annotated[str | None, Header()] = None,
) -> RequestContext:
    """Build the request context from the caller identity headers."""
    return RequestContext(
        company_id=_parse_uuid(x_company_id, "X-Company-ID"),
        user_id=_parse_uuid(x_user_id, "X-User-ID"),
        as_of=date.today(),
    )


# Type aliases for cleaner dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]
Context = Annotated[RequestContext, Depends(get_request_context)]
AppSettings = Annotated[Settings, Depends(get_settings)]
