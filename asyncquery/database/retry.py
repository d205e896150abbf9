"""Retry transient persistence failures with capped exponential backoff."""

import time
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import ParamSpec, TypeVar

import psycopg

from asyncquery.config.settings import Settings
from asyncquery.database.exceptions import PersistenceError, TransientPersistenceError
from asyncquery.logging.logger import Log

P = ParamSpec("P")
T = TypeVar("T")


@contextmanager
def translate_db_errors() -> Generator[None, None, None]:
    """Map psycopg exceptions onto the persistence error taxonomy.

    OperationalError covers serialization failures, deadlocks, lock timeouts,
    dropped connections and pool timeouts.
    """
    try:
        yield
    except psycopg.OperationalError as exc:
        raise TransientPersistenceError(str(exc)) from exc
    except psycopg.Error as exc:
        raise PersistenceError(str(exc)) from exc


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 0.1
    max_delay: float = 2.0
    backoff_factor: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_attempts=settings.persistence_max_attempts,
            base_delay=settings.persistence_retry_base_delay_seconds,
            max_delay=settings.persistence_retry_max_delay_seconds,
        )

    def call(self, func: Callable[P, T], *args: P.args, **kwargs: P.kwargs) -> T:
        """Run func, retrying TransientPersistenceError up to max_attempts times in total.

        Raises:
            TransientPersistenceError: the last failure once attempts are exhausted.
        """
        attempts = max(1, self.max_attempts)
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except TransientPersistenceError as exc:
                if attempt == attempts:
                    Log.error(f"Persistence step failed after {attempts} attempts: {exc}")
                    raise
                delay = self.delay_for(attempt)
                Log.warning(
                    f"Persistence step failed (attempt {attempt}/{attempts}): {exc}. "
                    f"Retrying in {delay:.2f}s"
                )
                time.sleep(delay)
        raise RuntimeError("Unexpected retry loop exit")

    def delay_for(self, attempt: int) -> float:
        return min(self.base_delay * (self.backoff_factor ** (attempt - 1)), self.max_delay)
