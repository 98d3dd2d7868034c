from reelestate.schemas.webhook import CompletionNotice, WebhookAck

__all__ = [
    "CompletionNotice",
    "WebhookAck",
]
