"""
Find-or-create over any mapped table.

The mapped class is the capability: it names the table, and the match
columns are checked against its columns, so callers never pass a bare
table name around.
"""
import logging
from typing import Any, Dict, NamedTuple, Type

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from catalogue.errors import EntityCreationError, EntityLookupError
from catalogue.models import Base

logger = logging.getLogger(__name__)


class Resolution(NamedTuple):
    id: int
    created: bool


async def find_or_create(
    db: AsyncSession,
    model: Type[Base],
    match: Dict[str, Any],
    defaults: Dict[str, Any],
) -> Resolution:
    """
    Return the id of the first row matching ``match``, inserting one if none does.

    Args:
        db: Database session
        model: Mapped class to look in (e.g. ``Brand``)
        match: Column name -> value, all must be equal
        defaults: Remaining column values used only when inserting

    Returns:
        Resolution(id, created)

    Raises:
        ValueError: If ``match`` names a column ``model`` does not have
        EntityLookupError: If the select fails
        EntityCreationError: If the insert fails or yields no id

    No ordering is imposed when several rows match. The insert is committed
    on its own and two concurrent callers can both miss and both insert.
    """
    table = model.__tablename__
    columns = model.__table__.columns
    unknown = [name for name in match if name not in columns]
    if not match or unknown:
        raise ValueError(f"Invalid match columns for {table}: {unknown or '(none)'}")

    stmt = select(model.id)
    for name, value in match.items():
        stmt = stmt.where(columns[name] == value)

    try:
        result = await db.execute(stmt)
        existing_id = result.scalars().first()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("[DB] Lookup in %s failed: %s", table, e)
        raise EntityLookupError(f"Failed to look up {table}", detail=str(e)) from e

    if existing_id is not None:
        logger.info("[DB] Found existing %s %s -> id %s", table, match, existing_id)
        return Resolution(existing_id, False)

    row = model(**{**defaults, **match})
    try:
        db.add(row)
        await db.flush()
        new_id = row.id
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("[DB] Insert into %s failed: %s", table, e)
        raise EntityCreationError(f"Failed to create record in {table}", detail=str(e)) from e

    if new_id is None:
        raise EntityCreationError(f"Failed to create record in {table}")

    logger.info("[DB] Created new %s %s -> id %s", table, match, new_id)
    return Resolution(new_id, True)
