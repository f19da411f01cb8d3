"""
Retry envelope around schema reconciliation.

A migration run awaits the optional before-migration hook once, then retries
the whole reconciliation pass with linearly increasing backoff. Several
server instances deploying at the same time can race on the same classes;
the retries absorb that. The outcome is returned, never turned into a
process exit: the embedding process decides what a failure means.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional

from .exceptions import ConfigurationError, StartupTimeoutError
from .schema.reconciler import ReconciliationResult, SchemaReconciler


logger = logging.getLogger(__name__)

NON_RETRYABLE_ERRORS = (ConfigurationError, StartupTimeoutError)

BeforeMigrationHook = Callable[[], Any]


@dataclass
class MigrationOutcome:
    """Outcome of a migration run."""

    success: bool
    attempts: int
    result: Optional[ReconciliationResult] = None
    error: Optional[BaseException] = None

    @property
    def is_fatal(self) -> bool:
        """Failures that no restart will fix."""
        return isinstance(self.error, ConfigurationError)

    def should_exit(self, production: bool) -> bool:
        """Whether the embedding process should exit non-zero."""
        if self.success:
            return False
        return production or self.is_fatal


class MigrationRunner:
    """Runs reconciliation passes until one succeeds or retries are exhausted."""

    def __init__(
        self,
        reconciler: SchemaReconciler,
        max_retries: int = 3,
        base_delay: float = 1.0,
        before_migration: Optional[BeforeMigrationHook] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.reconciler = reconciler
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.before_migration = before_migration
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        reconciler: SchemaReconciler,
        config,
        before_migration: Optional[BeforeMigrationHook] = None,
    ) -> "MigrationRunner":
        return cls(
            reconciler,
            max_retries=config.retry.max_retries,
            base_delay=config.retry.base_delay,
            before_migration=before_migration,
        )

    def backoff_delays(self) -> List[float]:
        """Delays before each retry: 1x, 2x, 3x... the base delay."""
        return [self.base_delay * n for n in range(1, self.max_retries + 1)]

    async def run(self) -> MigrationOutcome:
        """
        Run the migration.

        Returns:
            MigrationOutcome; failures are reported, not raised
        """
        if self.before_migration is not None:
            try:
                hook_result = self.before_migration()
                if inspect.isawaitable(hook_result):
                    await hook_result
            except Exception as e:
                logger.error(f"Before-migration hook failed: {e}")
                return MigrationOutcome(success=False, attempts=0, error=e)

        delays = self.backoff_delays()
        retries = 0
        while True:
            attempt = retries + 1
            try:
                result = await self.reconciler.run()
                if retries:
                    logger.info(f"Schema migration succeeded on attempt {attempt}")
                return MigrationOutcome(success=True, attempts=attempt, result=result)
            except NON_RETRYABLE_ERRORS as e:
                logger.error(f"Schema migration aborted: {e}")
                return MigrationOutcome(
                    success=False,
                    attempts=attempt,
                    result=self.reconciler.last_result,
                    error=e,
                )
            except Exception as e:
                if retries >= len(delays):
                    logger.error(f"Schema migration failed after {attempt} attempts: {e}")
                    return MigrationOutcome(
                        success=False,
                        attempts=attempt,
                        result=self.reconciler.last_result,
                        error=e,
                    )

                delay = delays[retries]
                retries += 1
                logger.warning(
                    f"Schema migration attempt {attempt} failed, retrying in {delay}s: {e}"
                )
                await self._sleep(delay)
