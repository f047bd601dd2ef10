"""JSON merge patch (RFC 7386) computation.

Used to turn "existing object" and "existing object with our fields
overwritten" into the smallest patch the API server needs.
"""

from typing import Any


def create_merge_patch(original: dict[str, Any], modified: dict[str, Any]) -> dict[str, Any]:
    """Compute the merge patch that turns ``original`` into ``modified``.

    Keys missing from ``modified`` are emitted as ``None`` (deletion), nested
    mappings are diffed recursively and any other changed value (lists
    included) is replaced whole.

    Args:
        original: The serialized object as last read from the server.
        modified: The serialized desired object.

    Returns:
        The merge patch; empty when nothing differs.

    """
    patch: dict[str, Any] = {}

    for key in sorted(original.keys() - modified.keys()):
        patch[key] = None

    for key, value in modified.items():
        if key not in original:
            patch[key] = value
            continue
        old = original[key]
        if isinstance(old, dict) and isinstance(value, dict):
            nested = create_merge_patch(old, value)
            if nested:
                patch[key] = nested
        elif old != value:
            patch[key] = value

    return patch
