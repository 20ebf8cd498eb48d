from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from studytrack.core.errors import AuthError
from studytrack.db import engine as db
from studytrack.models.principal import Principal
from studytrack.repos.pg_progress_repo import PgProgressRepo
from studytrack.repos.pg_taxonomy_repo import PgTaxonomyRepo
from studytrack.repos.progress_repo import InMemoryProgressRepo
from studytrack.repos.taxonomy_repo import InMemoryTaxonomyRepo, TaxonomyRepo
from studytrack.services import token_service
from studytrack.services.engine import ProgressEngine

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)

# Used when DATABASE_URL is unset (local dev, tests).
progress_repo = InMemoryProgressRepo()
taxonomy_repo = InMemoryTaxonomyRepo()


def require_student(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> Principal:
    """Validate the bearer token and return the calling student."""
    if credentials is None or not credentials.credentials:
        raise AuthError("Authentication required")
    try:
        claims = token_service.decode_student_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired student token rejected")
        raise AuthError("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid student token rejected: %s", e)
        raise AuthError("Invalid token") from None

    principal = Principal(student_id=str(claims["studentId"]))
    logger.debug("Token validated", extra={"student_id": principal.student_id})
    return principal


async def get_engine() -> AsyncGenerator[ProgressEngine, None]:
    """Request-scoped engine over one unit of work when Postgres is configured."""
    if not db.database_configured():
        yield ProgressEngine(progress_repo, taxonomy_repo)
        return

    async with db.session_scope() as session:
        yield ProgressEngine(PgProgressRepo(session), PgTaxonomyRepo(session))


async def get_taxonomy() -> AsyncGenerator[TaxonomyRepo, None]:
    if not db.database_configured():
        yield taxonomy_repo
        return

    async with db.session_scope() as session:
        yield PgTaxonomyRepo(session)
