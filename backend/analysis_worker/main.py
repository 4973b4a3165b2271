"""
Dataset analysis worker.

Consumes analysis triggers from the format and content topics and runs the
matching analysis stage. Flags are flipped through the metadata repository's
narrow update paths; the dataset lock is never taken.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
from typing import Any, Dict, Optional, Tuple

from confluent_kafka import Consumer, KafkaError, TopicPartition
from pydantic import ValidationError

from dataprep.config.settings import ApplicationSettings, get_settings
from dataprep.exceptions.dataset import DatasetServiceError
from dataprep.models.dataset import AnalysisTrigger
from dataprep.services.content_store import S3DatasetContentStore
from dataprep.services.dataset_analysis import DatasetAnalyzer
from dataprep.services.dataset_lock import DatasetLockCoordinator
from dataprep.services.metadata_repository import DatasetMetadataRepository
from dataprep.services.redis_service import RedisService, create_redis_service
from dataprep.utils.app_logger import configure_logging

logger = logging.getLogger(__name__)

MessageKey = Tuple[str, int, int]


class DatasetAnalysisWorker:
    def __init__(
        self,
        settings: Optional[ApplicationSettings] = None,
        *,
        analyzer: Optional[DatasetAnalyzer] = None,
        consumer: Optional[Any] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.running = False
        self.format_topic = self.settings.analysis.format_analysis_topic
        self.content_topic = self.settings.analysis.content_analysis_topic
        self.group_id = self.settings.analysis.analysis_consumer_group

        self.max_retries = max(1, self.settings.analysis.analysis_max_retries)
        self.backoff_base = max(0, self.settings.analysis.analysis_backoff_base_seconds)
        self.backoff_max = max(1, self.settings.analysis.analysis_backoff_max_seconds)

        self.analyzer = analyzer
        self.consumer = consumer
        self.repository: Optional[DatasetMetadataRepository] = None
        self.redis: Optional[RedisService] = None
        self._attempts: Dict[MessageKey, int] = {}

    async def initialize(self) -> None:
        if self.analyzer is None:
            # The repository needs a lock factory for its interface; analysis itself never locks.
            self.redis = create_redis_service(self.settings)
            await self.redis.connect()
            locks = DatasetLockCoordinator.from_settings(self.redis.client, self.settings.locks)

            self.repository = DatasetMetadataRepository.from_settings(self.settings.database, locks)
            await self.repository.initialize()
            content_store = S3DatasetContentStore.from_settings(self.settings.storage)
            self.analyzer = DatasetAnalyzer(self.repository, content_store)

        if self.consumer is None:
            self.consumer = Consumer(
                {
                    "bootstrap.servers": self.settings.database.kafka_servers,
                    "group.id": self.group_id,
                    "auto.offset.reset": "earliest",
                    "enable.auto.commit": False,
                    "session.timeout.ms": 45000,
                    "max.poll.interval.ms": 300000,
                }
            )
        self.consumer.subscribe([self.format_topic, self.content_topic])
        logger.info(
            "DatasetAnalysisWorker initialized (topics=%s,%s group=%s)",
            self.format_topic,
            self.content_topic,
            self.group_id,
        )

    async def close(self) -> None:
        if self.consumer:
            self.consumer.close()
            self.consumer = None
        if self.repository:
            await self.repository.close()
            self.repository = None
        if self.redis:
            await self.redis.disconnect()
            self.redis = None

    def stop(self) -> None:
        self.running = False

    def _backoff_seconds(self, attempt_count: int) -> int:
        return min(self.backoff_max, int(self.backoff_base * (2 ** max(0, attempt_count - 1))))

    async def _analyze(self, topic: str, trigger: AnalysisTrigger) -> None:
        if topic == self.format_topic:
            await self.analyzer.analyze_format(trigger.dataset_id)
        elif topic == self.content_topic:
            await self.analyzer.analyze_quality(trigger.dataset_id)
        else:
            logger.warning("Ignoring trigger from unexpected topic %s", topic)

    def _decode(self, msg: Any) -> Optional[AnalysisTrigger]:
        try:
            payload = json.loads(msg.value().decode("utf-8"))
            return AnalysisTrigger.model_validate(payload)
        except (AttributeError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
            logger.error(
                "Dropping undecodable analysis trigger (topic=%s offset=%s): %s",
                msg.topic(),
                msg.offset(),
                exc,
            )
            return None

    async def handle_message(self, msg: Any) -> bool:
        """
        Process one polled message. Returns True when its offset was committed,
        False when it was rewound for a retry.
        """
        trigger = self._decode(msg)
        if trigger is None:
            self.consumer.commit(msg)
            return True

        key: MessageKey = (msg.topic(), msg.partition(), msg.offset())
        try:
            await self._analyze(msg.topic(), trigger)
        except DatasetServiceError as exc:
            attempt_count = self._attempts.get(key, 0) + 1
            self._attempts[key] = attempt_count
            if attempt_count >= self.max_retries:
                logger.error(
                    "Analysis of dataset %s failed %s times on %s; giving up: %s",
                    trigger.dataset_id,
                    attempt_count,
                    msg.topic(),
                    exc,
                )
                self._attempts.pop(key, None)
                self.consumer.commit(msg)
                return True

            backoff_s = self._backoff_seconds(attempt_count)
            logger.warning(
                "Analysis of dataset %s failed; will retry (attempt=%s backoff=%ss): %s",
                trigger.dataset_id,
                attempt_count,
                backoff_s,
                exc,
            )
            await asyncio.sleep(backoff_s)
            self.consumer.seek(TopicPartition(msg.topic(), msg.partition(), msg.offset()))
            return False

        self._attempts.pop(key, None)
        self.consumer.commit(msg)
        return True

    async def run(self) -> None:
        await self.initialize()
        self.running = True
        try:
            while self.running:
                msg = self.consumer.poll(1.0) if self.consumer else None
                if msg is None:
                    await asyncio.sleep(0.1)
                    continue
                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        continue
                    logger.error("Kafka error: %s", msg.error())
                    continue
                await self.handle_message(msg)
        finally:
            await self.close()


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level)
    worker = DatasetAnalysisWorker(settings)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, worker.stop)

    await worker.run()


if __name__ == "__main__":
    asyncio.run(main())
