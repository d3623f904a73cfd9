"""
Provides standard for building background services, e.g., the auction sweep
"""

import logging
import multiprocessing
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from enum import IntEnum, auto
from threading import Timer, Event

from reactivex import Observable, Subject
from reactivex.operators import observe_on
from reactivex.scheduler import ThreadPoolScheduler
from reactivex.scheduler.scheduler import Scheduler
from reactivex.subject import BehaviorSubject

from silent_auction.core.health_check import HealthCheck, HealthCheckResult

# lifecycle and healthcheck streams are delivered on this scheduler
default_scheduler: Scheduler = ThreadPoolScheduler(multiprocessing.cpu_count())


class ServiceLifecycleState(IntEnum):
    """
    Service lifecycle states

    Normal service lifecycle: NEW -> STARTING -> RUNNING -> STOPPING -> STOPPED

    A stopped service can be restarted, i.e., STOPPED -> STARTING
    """

    NEW = auto()
    STARTING = auto()
    START_FAILED = auto()
    RUNNING = auto()
    STOPPING = auto()
    STOPPED = auto()


@dataclass(slots=True)
class ServiceLifecycleEvent:
    """
    Service lifecycle state events
    """

    service_name: str
    state: ServiceLifecycleState


class ServiceCommand(IntEnum):
    """
    Commands used to manage the service.
    """

    START = auto()
    STOP = auto()


@dataclass(slots=True)
class ServiceError(Exception):
    """
    Base class for service lifecycle errors
    """

    service_name: str
    cause: Exception | str

    def __str__(self) -> str:
        return f"[{self.service_name}] [{self.__class__.__name__}] {self.cause}"


class ServiceStartError(ServiceError):
    """
    Service failed to start
    """


class ServiceStopError(ServiceError):
    """
    Error occurred while trying to stop the service.
    """


class Service(ABC):
    """
    Background services extend Service and implement the `_start` and `_stop` hooks.

    Features
    --------
    - Services have a defined lifecycle, see `ServiceLifecycleState`.
    - Services can be signalled to start and stop through an `Observable[ServiceCommand]`
    - Lifecycle events are published on an Observable[ServiceLifecycleEvent]
    - Services schedule their own health checks. Results are published on an Observable[HealthCheckResult].
    """

    # pylint: disable=too-many-instance-attributes

    def __init__(
        self,
        commands: Observable[ServiceCommand] | None = None,
        healthchecks: list[HealthCheck] | None = None,
    ):
        self._state = ServiceLifecycleState.NEW
        self._logger = logging.getLogger(self.__class__.__name__)
        self._healthchecks = list(healthchecks) if healthchecks else []
        self._healthcheck_timers: dict[str, Timer] = {}

        self._state_subject: BehaviorSubject[ServiceLifecycleEvent] = BehaviorSubject(
            ServiceLifecycleEvent(self.name, self._state)
        )
        self._state_observable: Observable[
            ServiceLifecycleEvent
        ] = self._state_subject.pipe(observe_on(default_scheduler))

        self._healthchecks_subject: Subject[HealthCheckResult] = Subject()
        self._healthchecks_observable: Observable[
            HealthCheckResult
        ] = self._healthchecks_subject.pipe(observe_on(default_scheduler))

        self._running_event = Event()
        self._stopped_event = Event()

        if commands:
            commands.subscribe(self._on_command)

    def _on_command(self, command: ServiceCommand):
        self._logger.info("received ServiceCommand: %s", command.name)
        match command:
            case ServiceCommand.START:
                self.start()
            case ServiceCommand.STOP:
                self.stop()

    @property
    def name(self) -> str:
        """
        By default, the type class name is used.
        """
        return self.__class__.__name__

    @property
    def state(self) -> ServiceLifecycleState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state == ServiceLifecycleState.RUNNING

    @property
    def stopped(self) -> bool:
        return self._state == ServiceLifecycleState.STOPPED

    @property
    def healthchecks(self) -> list[HealthCheck]:
        return self._healthchecks

    @property
    def lifecycle_state_observable(self) -> Observable[ServiceLifecycleEvent]:
        """
        Used to monitor service lifecycle events.
        """
        return self._state_observable

    @property
    def healthchecks_observable(self) -> Observable[HealthCheckResult]:
        """
        Used to monitor service health checks.
        """
        return self._healthchecks_observable

    def await_running(self, timeout: timedelta | None = None):
        """
        Used to await the service is running
        """
        if not self._running_event.wait(timeout.total_seconds() if timeout else None):
            raise TimeoutError

    def await_stopped(self, timeout: timedelta | None = None):
        """
        Used to await service shutdown
        """
        if not self._stopped_event.wait(timeout.total_seconds() if timeout else None):
            raise TimeoutError

    def start(self):
        """
        Start the service

        Notes
        -----
        - The service can only be started when service state in [NEW, STOPPED]
        - When state is in [RUNNING, STARTING], then this is a noop
        - If an error occurs while starting, then the service is stopped to release any resources
          and a ServiceStartError is raised
        """
        if self._state in (
            ServiceLifecycleState.RUNNING,
            ServiceLifecycleState.STARTING,
        ):
            return

        if self._state not in (ServiceLifecycleState.NEW, ServiceLifecycleState.STOPPED):
            raise ServiceStartError(
                self.name,
                f"service cannot be started when state is: {self._state}",
            )

        self._set_state(ServiceLifecycleState.STARTING)
        try:
            self._start()
            self._set_state(ServiceLifecycleState.RUNNING)
        except Exception as err:
            self._set_state(ServiceLifecycleState.START_FAILED)
            self.stop()
            raise ServiceStartError(self.name, "error occurred while starting") from err

        for healthcheck in self._healthchecks:
            self._schedule_healthcheck(healthcheck)

    def stop(self):
        """
        Stop the service

        Notes
        -----
        - When state in [STOPPED, STOPPING], then this is a noop
        - A service that is STARTING cannot be stopped
        """
        if self._state in (
            ServiceLifecycleState.STOPPED,
            ServiceLifecycleState.STOPPING,
        ):
            return

        if self._state == ServiceLifecycleState.STARTING:
            raise ServiceStopError(
                self.name,
                f"service cannot be stopped when state is: {self._state}",
            )

        if self._state == ServiceLifecycleState.NEW:
            self._set_state(ServiceLifecycleState.STOPPED)
            return

        self._set_state(ServiceLifecycleState.STOPPING)
        try:
            self._stop()
        except Exception as err:
            raise ServiceStopError(self.name, "error occurred while stopping") from err
        finally:
            for timer in self._healthcheck_timers.values():
                timer.cancel()
            self._healthcheck_timers.clear()
            self._set_state(ServiceLifecycleState.STOPPED)

    def _schedule_healthcheck(self, healthcheck: HealthCheck):
        def run_healthcheck():
            if not self.running:
                return
            self._healthchecks_subject.on_next(healthcheck())
            self._schedule_healthcheck(healthcheck)

        timer = Timer(healthcheck.run_interval.total_seconds(), run_healthcheck)
        timer.daemon = True
        self._healthcheck_timers[healthcheck.name] = timer
        timer.start()

    def _set_state(self, state: ServiceLifecycleState):
        self._logger.info("state transition: %s -> %s", self._state.name, state.name)

        self._state = state

        match state:
            case ServiceLifecycleState.STARTING:
                self._stopped_event.clear()
            case ServiceLifecycleState.RUNNING:
                self._running_event.set()
            case ServiceLifecycleState.STOPPING:
                self._running_event.clear()
            case ServiceLifecycleState.STOPPED:
                self._stopped_event.set()

        self._state_subject.on_next(ServiceLifecycleEvent(self.name, state))

    @abstractmethod
    def _start(self):
        """
        Service startup hook
        """

    @abstractmethod
    def _stop(self):
        """
        Service shutdown hook
        """
