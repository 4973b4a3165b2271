"""
Analysis trigger publisher using Kafka.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from typing import TYPE_CHECKING, Any, Dict, Optional

from confluent_kafka import KafkaException, Producer

from dataprep.errors.dataset_error_codes import DatasetErrorCode
from dataprep.exceptions.dataset import DatasetServiceError
from dataprep.interfaces.dataset_collaborators import AnalysisPublisher
from dataprep.models.dataset import AnalysisTrigger

if TYPE_CHECKING:
    from dataprep.config.settings import ApplicationSettings

logger = logging.getLogger(__name__)


class DatasetAnalysisPublisher(AnalysisPublisher):
    def __init__(
        self,
        *,
        bootstrap_servers: str,
        format_topic: str = "dataset-format-analysis",
        content_topic: str = "dataset-content-analysis",
        flush_timeout_seconds: float = 5.0,
    ) -> None:
        self._bootstrap_servers = bootstrap_servers
        self._producer: Optional[Producer] = None
        self.format_topic = format_topic
        self.content_topic = content_topic
        self._flush_timeout_seconds = flush_timeout_seconds

    @classmethod
    def from_settings(cls, settings: "ApplicationSettings") -> "DatasetAnalysisPublisher":
        return cls(
            bootstrap_servers=settings.database.kafka_servers,
            format_topic=settings.analysis.format_analysis_topic,
            content_topic=settings.analysis.content_analysis_topic,
        )

    def _producer_instance(self) -> Producer:
        if self._producer is None:
            self._producer = Producer(
                {
                    "bootstrap.servers": self._bootstrap_servers,
                    "client.id": os.getenv("SERVICE_NAME") or "dataset-analysis-publisher",
                    "acks": "all",
                    "retries": 3,
                    "retry.backoff.ms": 100,
                    "linger.ms": 10,
                }
            )
        return self._producer

    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        producer = self._producer_instance()
        key = str(payload.get("dataset_id") or "").encode("utf-8")
        value = json.dumps(payload, ensure_ascii=False, default=str).encode("utf-8")

        loop = asyncio.get_running_loop()

        def _send() -> None:
            producer.produce(topic=topic, key=key, value=value)
            remaining = producer.flush(self._flush_timeout_seconds)
            if remaining:
                raise KafkaException(f"{remaining} message(s) still queued after flush")

        try:
            await loop.run_in_executor(None, _send)
        except (KafkaException, BufferError) as exc:
            raise DatasetServiceError(
                DatasetErrorCode.UNABLE_TO_PUBLISH_ANALYSIS,
                context={"id": payload.get("dataset_id"), "topic": topic},
                cause=exc,
            ) from exc
        logger.info("Published analysis trigger for dataset %s to %s", payload.get("dataset_id"), topic)

    async def publish_analysis_triggers(self, dataset_id: str) -> None:
        message = AnalysisTrigger(dataset_id=dataset_id).to_message()
        for topic in (self.format_topic, self.content_topic):
            await self.publish(topic, message)

    def close(self) -> None:
        if self._producer is not None:
            self._producer.flush(self._flush_timeout_seconds)
            self._producer = None
