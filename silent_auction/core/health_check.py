"""
Health Checks
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timedelta, UTC
from enum import IntEnum, auto


class HealthCheckStatus(IntEnum):
    """
    HealthCheckStatus
    """

    # healthy
    GREEN = auto()

    # functioning but requires attention, e.g., slow ledger queries
    YELLOW = auto()

    # unhealthy, e.g., the ledger is unreachable
    RED = auto()


class HealthCheckImpact(IntEnum):
    """
    Used to prioritize healthcheck failures, e.g., a RED ledger check (HIGH impact) is more urgent than
    a YELLOW transport check (LOW impact).
    """

    HIGH = auto()
    MEDIUM = auto()
    LOW = auto()


class YellowHealthCheck(Exception):
    """
    Indicates HealthCheck is in a YELLOW state
    """


@dataclass(slots=True)
class HealthCheckResult:
    """
    HealthCheckResult
    """

    name: str
    status: HealthCheckStatus
    timestamp: datetime
    duration: timedelta
    error: Exception | None = None


@dataclass(slots=True)
class HealthCheck(ABC):
    """
    HealthCheck

    Any exception raised by `execute()`, other than `YellowHealthCheck`, marks the check RED.
    """

    name: str

    # used to categorize healthchecks, e.g. database
    tags: set[str]
    description: str

    impact: HealthCheckImpact

    # how often to run the healthcheck
    run_interval: timedelta = timedelta(seconds=30)

    # execution time above this threshold downgrades a passing check to YELLOW
    slow_threshold: timedelta | None = None

    last_result: HealthCheckResult | None = field(default=None, init=False)

    def __call__(self) -> HealthCheckResult:
        start = datetime.now(UTC)
        status = HealthCheckStatus.GREEN
        error: Exception | None = None
        try:
            self.execute()
        except YellowHealthCheck as err:
            status, error = HealthCheckStatus.YELLOW, err
        except Exception as err:  # pylint: disable=broad-exception-caught
            status, error = HealthCheckStatus.RED, err

        duration = datetime.now(UTC) - start
        if (
            status == HealthCheckStatus.GREEN
            and self.slow_threshold is not None
            and duration > self.slow_threshold
        ):
            status = HealthCheckStatus.YELLOW

        self.last_result = HealthCheckResult(
            name=self.name,
            status=status,
            timestamp=start,
            duration=duration,
            error=error,
        )
        return self.last_result

    @abstractmethod
    def execute(self):
        """
        Execute the health check

        :exception YellowHealthCheck: indicates healthcheck current status is `YELLLOW`
        :exception Exception: any other exception is treated as `RED`
        """
