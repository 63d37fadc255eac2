"""rxflow messaging library."""

from .consumer import EventConsumer, KafkaEventConsumer
from .exceptions import MessagingError, MessagingErrorCodes
from .memory import InMemoryBroker, InMemoryEventConsumer, InMemoryEventProducer
from .models import ConsumedMessage, ConsumerConfig, ProducerConfig, parse_brokers
from .producer import EventProducer, KafkaEventProducer

__all__ = [
    "EventProducer",
    "KafkaEventProducer",
    "EventConsumer",
    "KafkaEventConsumer",
    "InMemoryBroker",
    "InMemoryEventConsumer",
    "InMemoryEventProducer",
    "ConsumedMessage",
    "ConsumerConfig",
    "ProducerConfig",
    "parse_brokers",
    "MessagingError",
    "MessagingErrorCodes",
]
