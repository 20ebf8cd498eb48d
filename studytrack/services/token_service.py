"""Student bearer tokens (HS256).

Tokens are issued by the student login flow elsewhere; this service only
verifies them.  `create_student_token` exists so tests and local tooling
can mint one with the same shared secret.

Claims:
    studentId   learner id, becomes Principal.student_id
    type        must be "student"
    exp / iat   standard expiry, issued-at
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import jwt

from studytrack.core.config import SETTINGS

ALGORITHM = "HS256"
TOKEN_TYPE = "student"
STUDENT_TOKEN_TTL_DAYS = 30


def create_student_token(
    *,
    student_id: str,
    email: str | None = None,
    ttl: timedelta = timedelta(days=STUDENT_TOKEN_TTL_DAYS),
    token_type: str = TOKEN_TYPE,
) -> str:
    now = datetime.now(UTC)
    payload = {
        "studentId": student_id,
        "type": token_type,
        "iat": now,
        "exp": now + ttl,
    }
    if email:
        payload["email"] = email
    return jwt.encode(payload, SETTINGS.jwt_secret, algorithm=ALGORITHM)


def decode_student_token(token: str) -> dict:
    """Verify signature and expiry, pinned to HS256.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure,
    including a well-signed token that is not a student token.
    """
    claims = jwt.decode(
        token,
        SETTINGS.jwt_secret,
        algorithms=[ALGORITHM],
        options={"require": ["studentId", "exp"]},
    )
    if claims.get("type") != TOKEN_TYPE:
        raise jwt.InvalidTokenError("not a student token")
    return claims
