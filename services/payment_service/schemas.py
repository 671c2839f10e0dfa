from pydantic import BaseModel, Field

SUCCEEDED = "succeeded"
CANCELED = "canceled"


class PaymentAuthorization(BaseModel):
    id: str
    status: str
    amount: int
    currency: str = "usd"
    client_secret: str | None = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def succeeded(self) -> bool:
        return self.status == SUCCEEDED

    @property
    def owner_id(self) -> str | None:
        return self.metadata.get("user_id")

    @classmethod
    def from_stripe(cls, body) -> "PaymentAuthorization":
        """Build from a PaymentIntent, either a stripe.PaymentIntent or its JSON dict."""
        return cls(
            id=body["id"],
            status=body.get("status", ""),
            amount=body.get("amount", 0),
            currency=body.get("currency", "usd"),
            client_secret=body.get("client_secret"),
            metadata={k: str(v) for k, v in dict(body.get("metadata") or {}).items()},
        )


class WebhookAck(BaseModel):
    received: bool = True
    updated_count: int = 0
