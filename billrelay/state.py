from dataclasses import dataclass, field
from datetime import datetime

from .config import Settings
from .delivery import ConfirmationHandler, DeliveryQueue
from .helpers import utcnow
from .ingest import WebhookIngestor
from .reaper import EvictionReaper
from .stores import BillStore, PendingTokenRegistry


@dataclass
class RelayState:
    """Per-app stores and the pipeline components wired around them."""

    settings: Settings
    bills: BillStore
    tokens: PendingTokenRegistry
    ingestor: WebhookIngestor
    queue: DeliveryQueue
    confirmer: ConfirmationHandler
    reaper: EvictionReaper
    started_at: datetime = field(default_factory=utcnow)


def build_state(settings: Settings) -> RelayState:
    bills = BillStore()                 # payment_id -> Bill
    tokens = PendingTokenRegistry()     # token_number -> PendingToken

    return RelayState(
        settings=settings,
        bills=bills,
        tokens=tokens,
        ingestor=WebhookIngestor(bills, tokens, settings.webhook_secret, settings.item_source),
        queue=DeliveryQueue(bills, settings.bill_retention_seconds),
        confirmer=ConfirmationHandler(bills),
        reaper=EvictionReaper(
            bills,
            tokens,
            settings.bill_retention_seconds,
            settings.token_retention_seconds,
            settings.reaper_interval_seconds,
        ),
    )
