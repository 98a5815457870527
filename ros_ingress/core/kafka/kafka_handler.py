import logging
from typing import List, Optional, Tuple
from aiokafka import AIOKafkaProducer
from aiokafka.helpers import create_ssl_context

logger = logging.getLogger(__name__)


class KafkaHandler:
    """
    Owns the shared Kafka producer used to publish ROS and validation events.

    Delivery guarantees (acks, idempotence, internal retries) are configured on
    the producer; callers never retry on their own.
    """

    def __init__(
        self,
        bootstrap_servers: List[str],
        client_id: str,
        security_protocol: str = "PLAINTEXT",
        sasl_mechanism: str = "",
        sasl_username: str = "",
        sasl_password: str = "",
        ssl_ca_location: str = "",
        batch_size: int = 16384,
    ):
        """
        Args:
            bootstrap_servers (List[str]): Kafka broker addresses.
            client_id (str): Client id reported to the brokers.
        """
        self.bootstrap_servers = bootstrap_servers
        self.client_id = client_id
        self.security_protocol = security_protocol
        self.sasl_mechanism = sasl_mechanism
        self.sasl_username = sasl_username
        self.sasl_password = sasl_password
        self.ssl_ca_location = ssl_ca_location
        self.batch_size = batch_size
        self.producer: Optional[AIOKafkaProducer] = None

    @classmethod
    def from_settings(cls, settings) -> "KafkaHandler":
        return cls(
            bootstrap_servers=settings.kafka_bootstrap_servers,
            client_id=settings.KAFKA_CLIENT_ID,
            security_protocol=settings.KAFKA_SECURITY_PROTOCOL,
            sasl_mechanism=settings.KAFKA_SASL_MECHANISM,
            sasl_username=settings.KAFKA_SASL_USERNAME,
            sasl_password=settings.KAFKA_SASL_PASSWORD,
            ssl_ca_location=settings.KAFKA_SSL_CA_LOCATION,
            batch_size=settings.KAFKA_BATCH_SIZE,
        )

    def producer_config(self) -> dict:
        config = {
            "bootstrap_servers": self.bootstrap_servers,
            "client_id": self.client_id,
            "acks": "all",
            "enable_idempotence": True,
            "max_batch_size": self.batch_size,
            "linger_ms": 5,
        }
        if self.security_protocol and self.security_protocol != "PLAINTEXT":
            config["security_protocol"] = self.security_protocol
            if self.sasl_mechanism:
                config["sasl_mechanism"] = self.sasl_mechanism
                config["sasl_plain_username"] = self.sasl_username
                config["sasl_plain_password"] = self.sasl_password
            if "SSL" in self.security_protocol:
                config["ssl_context"] = create_ssl_context(cafile=self.ssl_ca_location or None)
        return config

    async def start_producer(self):
        """
        Initializes the Kafka producer.
        """
        self.producer = AIOKafkaProducer(**self.producer_config())
        await self.producer.start()
        logger.info(f"Kafka producer started for {','.join(self.bootstrap_servers)}")

    async def stop_producer(self):
        """
        Flushes pending messages and stops the Kafka producer.
        """
        if self.producer:
            await self.producer.flush()
            await self.producer.stop()
            self.producer = None
            logger.info("Kafka producer stopped.")

    async def publish(self, topic: str, key: bytes, value: bytes, headers: List[Tuple[str, bytes]]):
        """
        Produces a message and waits for the broker acknowledgement.

        Raises:
            aiokafka.errors.KafkaError: when the broker rejects the message.
        """
        if not self.producer:
            await self.start_producer()

        metadata = await self.producer.send_and_wait(topic, value=value, key=key, headers=headers)
        logger.debug(
            f"Message delivered to {metadata.topic} partition {metadata.partition} offset {metadata.offset}"
        )
        return metadata

    async def health_check(self):
        """Raises when no broker metadata can be fetched."""
        if not self.producer:
            raise RuntimeError("Kafka producer is not started")
        cluster = await self.producer.client.fetch_all_metadata()
        if not cluster.brokers():
            raise RuntimeError("no Kafka brokers available")
