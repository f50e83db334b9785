"""Loyalty service exports."""

from .conversion import ConversionTable, parse_conversion_rates, points_for  # noqa: F401
from .ledger import ProcessedEventLedger  # noqa: F401
from .payments import PaymentPointCalculator  # noqa: F401
from .processor import (  # noqa: F401
    BalanceUpdateConflictError,
    LoyaltyEventProcessor,
    LoyaltyProcessingError,
    ProcessingOutcome,
    ProcessingStatus,
    SkipReason,
    classify_event,
)
from .reconciler import (  # noqa: F401
    BalanceReconciler,
    Direction,
    PointDelta,
    Reconciliation,
    read_available_points,
)
from .redemptions import (  # noqa: F401
    DirectDiscountSource,
    DiscountDescriptor,
    IncludedDiscountSource,
    RedemptionPointCalculator,
    select_discount_sources,
)
