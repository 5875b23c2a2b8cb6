"""Configuration for the hippo engine.

Values come from explicit construction or from the environment
(optionally via a ``.env`` file):

    HIPPO_STORAGE_PATH          directory for file persistence (unset = in-memory)
    HIPPO_RETENTION_POLICY      aggressive | balanced | archive-all
    HIPPO_SWEEP_EVERY           sweep after every N recorded traces (0 = never)
    HIPPO_CONTEXT_MAX_TRACES    default number of past traces in a context block
    HIPPO_REGRESSION_MIN_SCORE  default pass threshold for new regression tests
    MEM0_API_KEY / ZEP_API_KEY  enable external memory adapters
    HIPPO_ADAPTER_QUEUE_SIZE    bounded queue size per adapter
    HIPPO_ADAPTER_TIMEOUT       adapter HTTP/search timeout in seconds
    HIPPO_LOG_LEVEL             CLI log level
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

RETENTION_POLICY_NAMES = ("aggressive", "balanced", "archive-all")


@dataclass
class HippoConfig:
    """Engine configuration."""

    storage_path: Path | None = None
    retention_policy: str = "balanced"
    sweep_every: int = 0
    context_max_traces: int = 3
    regression_min_score: int = 70

    mem0_api_key: str | None = None
    zep_api_key: str | None = None
    adapter_queue_size: int = 100
    adapter_timeout_seconds: float = 10.0

    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if self.storage_path is not None:
            self.storage_path = Path(self.storage_path)
        if self.retention_policy not in RETENTION_POLICY_NAMES:
            raise ValueError(
                f"Unknown retention policy '{self.retention_policy}', "
                f"expected one of {', '.join(RETENTION_POLICY_NAMES)}"
            )
        if self.sweep_every < 0:
            raise ValueError("sweep_every must be >= 0")
        if self.adapter_queue_size < 1:
            raise ValueError("adapter_queue_size must be >= 1")

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> "HippoConfig":
        """Build a configuration from environment variables."""
        load_dotenv(dotenv_path)
        env = os.environ

        storage = env.get("HIPPO_STORAGE_PATH")
        return cls(
            storage_path=Path(storage) if storage else None,
            retention_policy=env.get("HIPPO_RETENTION_POLICY", "balanced"),
            sweep_every=int(env.get("HIPPO_SWEEP_EVERY", "0")),
            context_max_traces=int(env.get("HIPPO_CONTEXT_MAX_TRACES", "3")),
            regression_min_score=int(env.get("HIPPO_REGRESSION_MIN_SCORE", "70")),
            mem0_api_key=env.get("MEM0_API_KEY") or None,
            zep_api_key=env.get("ZEP_API_KEY") or None,
            adapter_queue_size=int(env.get("HIPPO_ADAPTER_QUEUE_SIZE", "100")),
            adapter_timeout_seconds=float(env.get("HIPPO_ADAPTER_TIMEOUT", "10.0")),
            log_level=env.get("HIPPO_LOG_LEVEL", "INFO").upper(),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "storage_path": str(self.storage_path) if self.storage_path else None,
            "retention_policy": self.retention_policy,
            "sweep_every": self.sweep_every,
            "context_max_traces": self.context_max_traces,
            "regression_min_score": self.regression_min_score,
            "mem0_enabled": bool(self.mem0_api_key),
            "zep_enabled": bool(self.zep_api_key),
            "adapter_queue_size": self.adapter_queue_size,
            "adapter_timeout_seconds": self.adapter_timeout_seconds,
            "log_level": self.log_level,
        }
