"""Projection of a source secret onto its synced copy.

Everything here is pure: no cluster access, no console output.
"""

from kubernetes import client

from secret_syncer.models import OWNING_SECRET_NAME, OWNING_SECRET_NAMESPACE


def synced_secret_name(namespace: str, name: str) -> str:
    """Return the name of the synced copy of ``namespace/name``.

    The rule is not injective: ``a-b/c`` and ``a/b-c`` both map to ``a-b-c``.

    Args:
        namespace: Namespace of the source secret.
        name: Name of the source secret.

    Returns:
        The synced secret name.

    """
    return f"{namespace}-{name}"


def desired_synced_secret(secrets_namespace: str, original: client.V1Secret) -> client.V1Secret:
    """Build the desired synced copy of a source secret.

    Labels and annotations are copied from the source, then the provenance
    labels are set so they always win over a source label with the same key.
    Payload, type and immutability are copied verbatim.

    Args:
        secrets_namespace: The namespace synced secrets live in.
        original: The source secret.

    Returns:
        A new V1Secret sharing no mutable maps with ``original``.

    """
    meta = original.metadata
    labels: dict[str, str] = dict(meta.labels or {})
    labels[OWNING_SECRET_NAMESPACE] = meta.namespace
    labels[OWNING_SECRET_NAME] = meta.name

    return client.V1Secret(
        api_version="v1",
        kind="Secret",
        metadata=client.V1ObjectMeta(
            namespace=secrets_namespace,
            name=synced_secret_name(meta.namespace, meta.name),
            labels=labels,
            annotations=dict(meta.annotations) if meta.annotations is not None else None,
        ),
        immutable=original.immutable,
        data=dict(original.data) if original.data is not None else None,
        string_data=dict(original.string_data) if original.string_data is not None else None,
        type=original.type,
    )
