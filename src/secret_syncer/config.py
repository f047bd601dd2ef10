"""Runtime configuration for secret-syncer.

The configuration is assembled once by the CLI and handed to the controller
and reconciler; nothing reads it from module globals.
"""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SyncConfig:
    """Settings for the secret syncing controller.

    Attributes:
        secrets_namespace: Namespace that holds the synced secrets.
        workers: Number of worker threads reconciling in parallel.
        resync_period: Seconds between full resyncs, 0 to disable.
        request_timeout: Per-request timeout in seconds for API calls.
        backoff_base_delay: Base delay in seconds for failed reconciles.
        backoff_max_delay: Upper bound in seconds for the retry delay.
        backoff_jitter_factor: Jitter applied to retry delays (0.1 = ±10%).

    """

    secrets_namespace: str
    workers: int = 1
    resync_period: float = 300
    request_timeout: float | None = 30
    backoff_base_delay: float = 1.0
    backoff_max_delay: float = 300.0
    backoff_jitter_factor: float = 0.1

    def __post_init__(self) -> None:
        """Validate the configuration.

        Raises:
            ValueError: If a value is out of range.

        """
        if not self.secrets_namespace:
            raise ValueError("secrets_namespace must not be empty")
        if self.workers < 1:
            raise ValueError("workers must be at least 1")
        if self.resync_period < 0:
            raise ValueError("resync_period must not be negative")
        if self.backoff_base_delay <= 0 or self.backoff_max_delay < self.backoff_base_delay:
            raise ValueError("backoff delays must satisfy 0 < base <= max")
        if not 0 <= self.backoff_jitter_factor < 1:
            raise ValueError("backoff_jitter_factor must be in [0, 1)")
