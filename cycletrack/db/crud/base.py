import logging
from typing import Any, Sequence, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, SQLModel
from sqlmodel.sql.expression import SelectOfScalar

from cycletrack.exceptions import ConflictError, InternalError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=SQLModel)


def fetch_first(session: Session, statement: SelectOfScalar[Any]) -> Any | None:
    try:
        return session.exec(statement).first()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Failed to read from the database")
        raise InternalError("Error reading from the database") from e


def fetch_all(session: Session, statement: SelectOfScalar[Any]) -> Sequence[Any]:
    try:
        return session.exec(statement).all()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Failed to read from the database")
        raise InternalError("Error reading from the database") from e


def commit_and_refresh(
    session: Session,
    instance: ModelT,
    conflict_detail: str = "Record already exists",
) -> ModelT:
    """
    Persist `instance`. A constraint violation becomes a ConflictError so a lost
    race looks the same to the caller as a duplicate caught by a lookup.
    """
    session.add(instance)
    try:
        session.commit()
        session.refresh(instance)
    except IntegrityError as e:
        session.rollback()
        logger.warning("Rejected %s: %s", type(instance).__name__, e.orig)
        raise ConflictError(conflict_detail) from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Failed to save %s", type(instance).__name__)
        raise InternalError(f"Error saving {type(instance).__name__.lower()}") from e
    return instance


def delete_and_commit(session: Session, instance: SQLModel) -> None:
    session.delete(instance)
    try:
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Failed to delete %s", type(instance).__name__)
        raise InternalError(f"Error deleting {type(instance).__name__.lower()}") from e
