"""
Shared API dependencies.

Authentication happens upstream; the gateway forwards the acting admin's
id in the X-Actor-Id header.
"""

from fastapi import Header, HTTPException, status

from coachpay.engine.periods import PayoutPeriod


async def get_actor(x_actor_id: str = Header(..., alias="X-Actor-Id")) -> str:
    """Acting admin id for audit entries."""
    actor = x_actor_id.strip()
    if not actor:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-Actor-Id header is required",
        )
    return actor


def parse_period(label: str) -> PayoutPeriod:
    """Parse a YYYY-MM path or body value, as a 422 on failure."""
    try:
        return PayoutPeriod.parse(label)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail=f"Invalid period {label!r}, expected YYYY-MM",
        ) from e
