from signsync.models.agreement import Agreement
from signsync.models.webhook_event import WebhookEvent

__all__ = ["Agreement", "WebhookEvent"]
