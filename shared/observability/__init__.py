from .setup import setup_observability
from .metrics import (
    stickers_checkout_initiated_total,
    stickers_checkout_confirmed_total,
    stickers_status_transitions_total,
    stickers_asset_delete_failures_total
)
