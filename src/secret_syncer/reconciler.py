"""Reconciliation of a single source secret with its synced copy.

Each pass re-reads both secrets and converges the synced copy: create it,
patch it, delete it or leave it alone. Nothing is remembered between passes,
so a pass can be retried at any point after a failure.
"""

import copy

from icecream import ic
from kubernetes import client

from secret_syncer import console
from secret_syncer.models import ReconcileContext, ReconcileResult, SecretRef, SyncAction
from secret_syncer.predicates import EligibilityPredicate
from secret_syncer.projection import desired_synced_secret, synced_secret_name
from secret_syncer.store import SecretStore


class SecretSyncer:
    """Keeps synced copies of eligible secrets in the sync namespace.

    Attributes:
        secrets_namespace: Namespace that holds the synced secrets.
        store: Cluster access used for every read and write.
        predicate: Decides whether a source secret is eligible.

    """

    def __init__(self, secrets_namespace: str, store: SecretStore, predicate: EligibilityPredicate) -> None:
        self.secrets_namespace = secrets_namespace
        self.store = store
        self.predicate = predicate

    def reconcile(self, ctx: ReconcileContext, ref: SecretRef) -> ReconcileResult:
        """Converge the synced copy of ``ref``.

        A missing or ineligible source leads to the synced copy being
        removed; an eligible source leads to it being created or updated.

        Args:
            ctx: Cancellation and timeout settings for every cluster call.
            ref: Identity of the source secret.

        Returns:
            ReconcileResult describing what was done.

        Raises:
            SyncFailedError: On any cluster error; the caller should retry.
            ReconcileCancelledError: If ``ctx`` was cancelled.

        """
        ic(ref)

        original = self.store.get(ctx, ref.namespace, ref.name)
        if original is None:
            ic(f"{ref} deleted or not yet available")
            return self._report(ref, self.cleanup_synced_secret(ctx, ref))

        if not self.predicate.is_eligible(ctx, self.store, original):
            ic(f"{ref} not eligible")
            return self._report(ref, self.cleanup_synced_secret(ctx, ref))

        desired = desired_synced_secret(self.secrets_namespace, original)
        return self._report(ref, self.ensure_synced_secret(ctx, desired))

    def cleanup_synced_secret(self, ctx: ReconcileContext, ref: SecretRef) -> ReconcileResult:
        """Delete the synced copy of ``ref`` if there is one."""
        synced = self.store.get(ctx, self.secrets_namespace, synced_secret_name(ref.namespace, ref.name))
        if synced is None:
            return ReconcileResult(action=SyncAction.UNCHANGED)

        self.store.delete(ctx, synced)
        return ReconcileResult(action=SyncAction.DELETED)

    def ensure_synced_secret(self, ctx: ReconcileContext, desired: client.V1Secret) -> ReconcileResult:
        """Create ``desired`` or patch the existing synced secret towards it.

        Only the fields owned by the syncer are overwritten on the existing
        object; its system metadata is left as read, and the patch is
        conditional on the resource version that was read.
        """
        meta = desired.metadata
        existing = self.store.get(ctx, meta.namespace, meta.name)
        if existing is None:
            self.store.create(ctx, desired)
            return ReconcileResult(action=SyncAction.CREATED)

        temp: client.V1Secret = copy.deepcopy(existing)
        temp.metadata.annotations = meta.annotations
        temp.metadata.labels = meta.labels
        temp.immutable = desired.immutable
        temp.data = desired.data
        temp.string_data = desired.string_data
        temp.type = desired.type

        if self.store.patch(ctx, existing, temp):
            return ReconcileResult(action=SyncAction.UPDATED)
        return ReconcileResult(action=SyncAction.UNCHANGED)

    @staticmethod
    def _report(ref: SecretRef, result: ReconcileResult) -> ReconcileResult:
        if result.action is not SyncAction.UNCHANGED:
            console.step(f"{console.highlight(str(ref))}: synced secret {result.action.value}")
        return result

    def __repr__(self) -> str:
        """Return a detailed string representation for debugging."""
        return (
            f"SecretSyncer(secrets_namespace={self.secrets_namespace!r}, "
            f"store={self.store!r}, predicate={self.predicate!r})"
        )
