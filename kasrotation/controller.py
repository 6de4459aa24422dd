"""Controller that keeps every kube-apiserver certificate rotated.

Each planned rotation is handed to a rotator built by a caller-supplied
factory. Three work queues watch the cluster network and infrastructure
configuration and keep the hostnames of the dynamic serving certificates
current.
"""

from __future__ import annotations

import collections
import logging
import threading
from collections.abc import Callable, Hashable
from datetime import timedelta
from typing import Any, Protocol

from kasrotation.dynamic_serving import DynamicServingRotation
from kasrotation.hostnames import (
    external_load_balancer_hostname,
    internal_load_balancer_hostname,
    service_hostnames,
)
from kasrotation.specs import CertRotationSpec, cert_rotation_specs

logger = logging.getLogger(__name__)

WORK_QUEUE_KEY = "key"
CLUSTER_OBJECT_NAME = "cluster"
CONTROLLER_NAME = "CertRotationController"

_BASE_RETRY_DELAY = 0.005
_MAX_RETRY_DELAY = 1000.0


class Rotator(Protocol):
    """What ``rotator_factory`` must return for each rotation spec."""

    def sync(self, run_once: bool) -> Any: ...

    def run(self, stop_event: threading.Event, workers: int) -> Any: ...


class AggregateError(Exception):
    """Several errors collected from independent operations."""

    def __init__(self, errors: list[BaseException]) -> None:
        self.errors = list(errors)
        if len(self.errors) == 1:
            message = str(self.errors[0])
        else:
            message = "[" + ", ".join(str(err) for err in self.errors) + "]"
        super().__init__(message)


class _RateLimitingQueue:
    """Deduplicating work queue with per-item exponential retry back-off."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._cond = threading.Condition()
        self._queue: collections.deque[Hashable] = collections.deque()
        self._dirty: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        self._failures: dict[Hashable, int] = {}
        self._shutting_down = False

    def add(self, item: Hashable) -> None:
        with self._cond:
            if self._shutting_down or item in self._dirty:
                return
            self._dirty.add(item)
            if item in self._processing:
                return
            self._queue.append(item)
            self._cond.notify()

    def get(self) -> Hashable | None:
        """Next item, blocking; None once the queue is shut down and drained."""
        with self._cond:
            while not self._queue and not self._shutting_down:
                self._cond.wait()
            if not self._queue:
                return None
            item = self._queue.popleft()
            self._processing.add(item)
            self._dirty.discard(item)
            return item

    def done(self, item: Hashable) -> None:
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty:
                self._queue.append(item)
                self._cond.notify()

    def forget(self, item: Hashable) -> None:
        with self._cond:
            self._failures.pop(item, None)

    def add_rate_limited(self, item: Hashable) -> None:
        with self._cond:
            if self._shutting_down:
                return
            failures = self._failures.get(item, 0)
            self._failures[item] = failures + 1
        delay = min(_BASE_RETRY_DELAY * (2 ** failures), _MAX_RETRY_DELAY)
        timer = threading.Timer(delay, self.add, args=(item,))
        timer.daemon = True
        timer.start()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()


class CertRotationController:
    """Runs all certificate rotators and feeds hostnames to the serving ones.

    ``network_lister(name)`` returns the network configuration, an object
    with a ``service_network`` list of CIDRs. ``infrastructure_lister(name)``
    returns an object with ``api_server_url`` and ``api_server_internal_url``.
    Either may raise, which fails the sync that called it.
    """

    def __init__(
        self,
        network_lister: Callable[[str], Any],
        infrastructure_lister: Callable[[str], Any],
        rotator_factory: Callable[[CertRotationSpec], Rotator],
        day: timedelta | None = None,
        refresh_only_when_expired: bool = False,
    ) -> None:
        self._network_lister = network_lister
        self._infrastructure_lister = infrastructure_lister

        self.service_network = DynamicServingRotation()
        self.external_load_balancer = DynamicServingRotation()
        self.internal_load_balancer = DynamicServingRotation()

        self._service_queue = _RateLimitingQueue("ServiceHostnames")
        self._external_queue = _RateLimitingQueue("ExternalLoadBalancerHostnames")
        self._internal_queue = _RateLimitingQueue("InternalLoadBalancerHostnames")

        self.specs = cert_rotation_specs(
            day,
            refresh_only_when_expired,
            self.service_network,
            self.external_load_balancer,
            self.internal_load_balancer,
        )
        self.rotators = [rotator_factory(spec) for spec in self.specs]

    # -- hostname syncs -------------------------------------------------

    def sync_service_hostnames(self) -> None:
        network = self._network_lister(CLUSTER_OBJECT_NAME)
        self.service_network.set_hostnames(service_hostnames(network.service_network))

    def sync_external_load_balancer_hostnames(self) -> None:
        infrastructure = self._infrastructure_lister(CLUSTER_OBJECT_NAME)
        hostname = external_load_balancer_hostname(infrastructure.api_server_url)
        if hostname is not None:
            self.external_load_balancer.set_hostnames([hostname])

    def sync_internal_load_balancer_hostnames(self) -> None:
        infrastructure = self._infrastructure_lister(CLUSTER_OBJECT_NAME)
        hostname = internal_load_balancer_hostname(
            infrastructure.api_server_internal_url
        )
        if hostname is not None:
            self.internal_load_balancer.set_hostnames([hostname])

    # -- event handlers -------------------------------------------------

    def enqueue_service_hostnames(self) -> None:
        """Handler for any add, update or delete of the network config."""
        self._service_queue.add(WORK_QUEUE_KEY)

    def enqueue_external_load_balancer_hostnames(self) -> None:
        """Handler for any add, update or delete of the infrastructure config."""
        self._external_queue.add(WORK_QUEUE_KEY)

    def enqueue_internal_load_balancer_hostnames(self) -> None:
        """Handler for any add, update or delete of the infrastructure config."""
        self._internal_queue.add(WORK_QUEUE_KEY)

    # -- queue processing -----------------------------------------------

    @staticmethod
    def _process(queue: _RateLimitingQueue, sync: Callable[[], None]) -> bool:
        key = queue.get()
        if key is None:
            return False
        try:
            sync()
        except Exception as exc:  # retried with back-off, never fatal
            logger.error("%s failed with : %s", key, exc)
            queue.add_rate_limited(key)
        else:
            queue.forget(key)
        finally:
            queue.done(key)
        return True

    def process_service_hostnames(self) -> bool:
        """Handle one queued item; False once the queue has shut down."""
        return self._process(self._service_queue, self.sync_service_hostnames)

    def process_external_load_balancer_hostnames(self) -> bool:
        """Handle one queued item; False once the queue has shut down."""
        return self._process(
            self._external_queue, self.sync_external_load_balancer_hostnames
        )

    def process_internal_load_balancer_hostnames(self) -> bool:
        """Handle one queued item; False once the queue has shut down."""
        return self._process(
            self._internal_queue, self.sync_internal_load_balancer_hostnames
        )

    # -- lifecycle ------------------------------------------------------

    def wait_for_ready(self) -> None:
        """Sync all hostnames once; any failure is raised, as rotation cannot start."""
        logger.info("Waiting for CertRotation")
        try:
            self.sync_service_hostnames()
            self.sync_external_load_balancer_hostnames()
            self.sync_internal_load_balancer_hostnames()
        finally:
            logger.info("Finished waiting for CertRotation")

    def run_once(self) -> None:
        """Sync every rotator once without touching operator status.

        Raises AggregateError holding every rotator failure.
        """
        errors: list[BaseException] = []
        for rotator in self.rotators:
            try:
                rotator.sync(True)
            except Exception as exc:
                errors.append(exc)
        if errors:
            raise AggregateError(errors)

    def run(self, stop_event: threading.Event, workers: int) -> None:
        """Run the hostname workers and all rotators until ``stop_event`` is set."""
        logger.info("Starting CertRotation")
        try:
            self.wait_for_ready()
            for process in (
                self.process_service_hostnames,
                self.process_external_load_balancer_hostnames,
                self.process_internal_load_balancer_hostnames,
            ):
                threading.Thread(
                    target=self._drain, args=(process,), daemon=True
                ).start()
            for rotator in self.rotators:
                threading.Thread(
                    target=rotator.run, args=(stop_event, workers), daemon=True
                ).start()
            stop_event.wait()
        finally:
            for queue in (self._service_queue, self._external_queue, self._internal_queue):
                queue.shut_down()
            logger.info("Shutting down CertRotation")

    @staticmethod
    def _drain(process: Callable[[], bool]) -> None:
        while process():
            pass


def new_cert_rotation_controller(
    network_lister: Callable[[str], Any],
    infrastructure_lister: Callable[[str], Any],
    rotator_factory: Callable[[CertRotationSpec], Rotator],
    day: timedelta | None = None,
) -> CertRotationController:
    """A controller whose certificates refresh ahead of expiry."""
    return CertRotationController(
        network_lister, infrastructure_lister, rotator_factory, day, False
    )


def new_cert_rotation_controller_only_when_expired(
    network_lister: Callable[[str], Any],
    infrastructure_lister: Callable[[str], Any],
    rotator_factory: Callable[[CertRotationSpec], Rotator],
    day: timedelta | None = None,
) -> CertRotationController:
    """A controller whose certificates refresh only once expired."""
    return CertRotationController(
        network_lister, infrastructure_lister, rotator_factory, day, True
    )