"""Watch-driven controller feeding the reconciler.

The controller decides when a secret is reconciled: on every watch event,
on periodic resyncs and on retries after failures. The reconciler decides
what to do.
"""

import threading
import time
from collections import Counter
from typing import Any

from icecream import ic
from kubernetes import client, watch
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from secret_syncer import console
from secret_syncer.config import SyncConfig
from secret_syncer.exceptions import ReconcileCancelledError, SyncFailedError
from secret_syncer.models import (
    OWNING_SECRET_NAME,
    OWNING_SECRET_NAMESPACE,
    ReconcileContext,
    SecretRef,
    SyncAction,
)
from secret_syncer.reconciler import SecretSyncer
from secret_syncer.workqueue import WorkQueue

# Seconds the API server keeps a single watch request open
_WATCH_TIMEOUT = 300
# Seconds to wait before restarting a failed watch
_WATCH_RETRY_DELAY = 5


class SecretSyncController:
    """Runs the secret syncer against a live cluster.

    Attributes:
        config: The controller configuration.
        syncer: The reconciler invoked for every queued ref.
        queue: Pending refs.
        ctx: Context shared by every reconcile pass; cancelled on stop.

    """

    def __init__(self, config: SyncConfig, syncer: SecretSyncer, api: client.CoreV1Api) -> None:
        self.config = config
        self.syncer = syncer
        self.queue = WorkQueue(
            base_delay=config.backoff_base_delay,
            max_delay=config.backoff_max_delay,
            jitter_factor=config.backoff_jitter_factor,
        )
        self.ctx = ReconcileContext(request_timeout=config.request_timeout)
        self._api = api
        self._watch: watch.Watch | None = None
        self._stopped = threading.Event()

    def ref_for(self, secret: Any) -> SecretRef:
        """Map a secret to the source ref whose reconcile it concerns.

        Synced secrets map back to their source through the provenance
        labels, so an externally modified or orphaned copy gets reconciled.
        """
        meta = secret.metadata
        labels = meta.labels or {}
        if (
            meta.namespace == self.config.secrets_namespace
            and OWNING_SECRET_NAMESPACE in labels
            and OWNING_SECRET_NAME in labels
        ):
            return SecretRef(labels[OWNING_SECRET_NAMESPACE], labels[OWNING_SECRET_NAME])
        return SecretRef(meta.namespace, meta.name)

    def handle_event(self, event: dict[str, Any]) -> SecretRef | None:
        """Queue the ref concerned by a watch event.

        Returns:
            The queued ref, or None for events that carry no secret.

        """
        obj = event.get("object")
        if event.get("type") == "ERROR" or obj is None or getattr(obj, "metadata", None) is None:
            ic(event)
            return None
        ref = self.ref_for(obj)
        self.queue.add(ref)
        return ref

    def resync(self) -> str | None:
        """Queue every secret in the cluster.

        Returns:
            The resource version of the list, to start a watch from.

        Raises:
            SyncFailedError: If the secrets cannot be listed.

        """
        self.ctx.raise_if_cancelled()
        try:
            secrets = self._api.list_secret_for_all_namespaces(_request_timeout=self.ctx.request_timeout)
        except (ApiException, HTTPError) as err:
            raise SyncFailedError(f"Failed to list secrets: {err}", status=getattr(err, "status", None)) from err

        for secret in secrets.items:
            self.queue.add(self.ref_for(secret))
        ic(len(secrets.items))
        return secrets.metadata.resource_version

    def process_next(self, timeout: float | None = None) -> SyncAction | None:
        """Reconcile the next queued ref.

        Failures, expected or not, are requeued with backoff and never raised.

        Args:
            timeout: Seconds to wait for a ref.

        Returns:
            The action taken, or None if nothing was reconciled.

        """
        ref = self.queue.get(timeout=timeout)
        if ref is None:
            return None

        try:
            result = self.syncer.reconcile(self.ctx, ref)
        except ReconcileCancelledError:
            return None
        except SyncFailedError as err:
            delay = self.queue.add_rate_limited(ref)
            console.error(f"Failed to sync {console.highlight(str(ref))}, retrying in {delay:.1f}s: {err}")
            return None
        except Exception as err:
            # A broken predicate or client must not take the worker down with it
            delay = self.queue.add_rate_limited(ref)
            ic(err)
            console.error(
                f"Unexpected error syncing {console.highlight(str(ref))}, retrying in {delay:.1f}s: "
                f"{type(err).__name__}: {err}"
            )
            return None
        finally:
            self.queue.done(ref)

        self.queue.forget(ref)
        if result.requeue_after is not None:
            self.queue.add_after(ref, result.requeue_after)
        return result.action

    def run_once(self) -> Counter[str]:
        """Resync and reconcile every queued ref once.

        Refs failing in this pass are not retried.

        Returns:
            Number of refs per action, plus ``failed``.

        """
        self.resync()
        counts: Counter[str] = Counter()
        with console.create_task_progress() as progress:
            task = progress.add_task("Syncing secrets", total=len(self.queue))
            while len(self.queue):
                action = self.process_next(timeout=0)
                counts[action.value if action is not None else "failed"] += 1
                progress.update(task, advance=1)
        return counts

    def run(self) -> None:
        """Reconcile continuously until ``stop`` is called."""
        console.action(
            f"Syncing secrets into {console.highlight(self.config.secrets_namespace)} "
            f"with {self.config.workers} worker(s)"
        )
        workers = [
            threading.Thread(target=self._worker, name=f"secret-syncer-{i}", daemon=True)
            for i in range(self.config.workers)
        ]
        for worker in workers:
            worker.start()

        try:
            self._watch_loop()
        finally:
            self.stop()
            for worker in workers:
                worker.join()
        console.success("Controller stopped")

    def stop(self) -> None:
        """Stop the watch and the workers."""
        self._stopped.set()
        self.ctx.cancel()
        self.queue.shutdown()
        if self._watch is not None:
            self._watch.stop()

    def _worker(self) -> None:
        while not self.queue.shutting_down:
            self.process_next()

    def _watch_loop(self) -> None:
        last_resync = 0.0
        resource_version = None
        while not self._stopped.is_set():
            try:
                if resource_version is None or self._resync_due(last_resync):
                    resource_version = self.resync()
                    last_resync = time.monotonic()
                resource_version = self._watch_once(resource_version)
            except ReconcileCancelledError:
                return
            except SyncFailedError as err:
                console.warning(f"Resync failed: {err}")
                self._stopped.wait(_WATCH_RETRY_DELAY)
            except ApiException as err:
                # 410 Gone: the resource version is too old, start over from a fresh list
                if err.status != 410:
                    console.warning(f"Watch failed: {err.status} {err.reason}")
                    self._stopped.wait(_WATCH_RETRY_DELAY)
                resource_version = None
            except HTTPError as err:
                console.warning(f"Watch connection lost: {err}")
                self._stopped.wait(_WATCH_RETRY_DELAY)
                resource_version = None

    def _resync_due(self, last_resync: float) -> bool:
        period = self.config.resync_period
        return period > 0 and time.monotonic() - last_resync >= period

    def _watch_once(self, resource_version: str | None) -> str | None:
        timeout = _WATCH_TIMEOUT
        if self.config.resync_period > 0:
            timeout = min(timeout, max(int(self.config.resync_period), 1))

        self._watch = watch.Watch()
        for event in self._watch.stream(
            self._api.list_secret_for_all_namespaces,
            resource_version=resource_version,
            timeout_seconds=timeout,
        ):
            if self._stopped.is_set():
                break
            self.handle_event(event)
            obj = event.get("object")
            if event.get("type") != "ERROR" and getattr(obj, "metadata", None) is not None:
                resource_version = obj.metadata.resource_version
        return resource_version

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return f"SecretSyncController(config={self.config!r}, syncer={self.syncer!r})"
