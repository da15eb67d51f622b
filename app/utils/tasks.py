"""
Background task utilities for email and push delivery
"""
from typing import Callable, Any
from concurrent.futures import ThreadPoolExecutor

from sqlalchemy import event
from sqlalchemy.orm import Session

from app.core.logging_config import logger

# Thread pool executor for background tasks
_executor = ThreadPoolExecutor(max_workers=10, thread_name_prefix="casaora-bg")

# Session.info key holding deliveries that wait for the transaction to commit
PENDING_TASKS_KEY = "pending_background_tasks"


def _log_failure(name: str):
    def callback(future):
        error = future.exception()
        if error is not None:
            logger.error(f"Background task {name} failed: {str(error)}")
    return callback


def schedule_task(func: Callable, *args: Any, **kwargs: Any) -> None:
    """
    Schedule a function to run in background

    Args:
        func: Function to run
        *args: Positional arguments
        **kwargs: Keyword arguments
    """
    try:
        future = _executor.submit(func, *args, **kwargs)
        future.add_done_callback(_log_failure(func.__name__))
    except RuntimeError as e:
        # Executor already shut down
        logger.error(f"Error scheduling task {func.__name__}: {str(e)}")


def schedule_after_commit(db: Session, func: Callable, *args: Any, **kwargs: Any) -> None:
    """
    Schedule a function once the session's transaction commits.
    Dropped if the transaction rolls back, so nothing is sent for unsaved data.
    """
    db.info.setdefault(PENDING_TASKS_KEY, []).append((func, args, kwargs))


@event.listens_for(Session, "after_commit")
def _run_pending_tasks(session: Session) -> None:
    if session.in_nested_transaction():
        return
    for func, args, kwargs in session.info.pop(PENDING_TASKS_KEY, []):
        schedule_task(func, *args, **kwargs)


@event.listens_for(Session, "after_soft_rollback")
def _drop_pending_tasks(session: Session, previous_transaction) -> None:
    # Rolling back a savepoint leaves the outer transaction and its deliveries in place
    if previous_transaction.nested:
        return
    dropped = session.info.pop(PENDING_TASKS_KEY, [])
    if dropped:
        logger.info(f"Dropped {len(dropped)} background task(s) after rollback")


def shutdown_background_tasks(wait: bool = True) -> None:
    _executor.shutdown(wait=wait)
