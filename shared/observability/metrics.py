from prometheus_client import Counter

# Business Metrics
stickers_checkout_initiated_total = Counter(
    "stickers_checkout_initiated_total",
    "Checkout batches submitted to the payment gateway",
    ["outcome"]  # Labels: 'created', 'rejected', 'upstream_error', 'conflict'
)

stickers_checkout_confirmed_total = Counter(
    "stickers_checkout_confirmed_total",
    "Checkout confirmation attempts",
    ["outcome"]  # Labels: 'confirmed', 'not_succeeded', 'owner_mismatch', 'nothing_to_update'
)

stickers_status_transitions_total = Counter(
    "stickers_status_transitions_total",
    "Order status transitions applied",
    ["status"]  # Labels: 'pending', 'processing', 'completed'
)

stickers_asset_delete_failures_total = Counter(
    "stickers_asset_delete_failures_total",
    "Asset deletions that failed while deleting an order"
)
