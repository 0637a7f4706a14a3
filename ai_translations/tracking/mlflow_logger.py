from __future__ import annotations

import logging
import os
import uuid
from typing import Any, Dict

logger = logging.getLogger(__name__)


class MlflowLogger:
    """
    Optional MLflow logger for translation batches. Enabled by setting
    AI_TRANSLATIONS_ENABLE_MLFLOW=1 and installing the mlflow package
    (the ``tracking`` extra).
    """

    def __init__(self) -> None:
        self._enabled = os.getenv("AI_TRANSLATIONS_ENABLE_MLFLOW", "0").lower() in (
            "1",
            "true",
            "yes",
        )
        self._mlflow = None
        self._run_name = os.getenv("AI_TRANSLATIONS_MLFLOW_RUN_NAME", "ai-translations")
        if self._enabled:
            try:
                import mlflow  # type: ignore

                self._mlflow = mlflow
            except ImportError:
                logger.warning("MLflow tracking requested but mlflow is not installed")
                self._enabled = False

    @property
    def enabled(self) -> bool:
        return self._enabled

    def log_batch_report(self, report: Dict[str, Any]) -> None:
        if not (self._enabled and self._mlflow):
            return
        metrics = {
            key: float(report[key])
            for key in ("retry_count", "final_ceiling", "elapsed_sec")
            if key in report
        }
        for key in ("succeeded", "failed", "cancelled", "skipped"):
            if key in report:
                metrics[f"{key}_count"] = float(len(report[key]))
        path = f"batches/{uuid.uuid4().hex}.json"

        def action() -> None:
            self._mlflow.log_dict(report, path)
            if metrics:
                self._mlflow.log_metrics(metrics)

        active = self._mlflow.active_run()
        if active:
            action()
            return

        with self._mlflow.start_run(run_name=self._run_name):
            action()
