"""Analytics endpoints (low-stock predictions, anomaly report).

Both are read-only views computed from the full stored chain; thresholds
come from the ``[analytics]`` config section.
"""

from fastapi import APIRouter

from bims_ledger.analytics import anomaly_report, low_stock_predictions
from bims_ledger.api.models import LowStockPredictionResponse
from bims_ledger.services import ledger_service

router = APIRouter(prefix="/api/analytics", tags=["analytics"])


@router.get("/low-stock-predictions", response_model=list[LowStockPredictionResponse])
def get_low_stock_predictions():
    """SKUs expected to run out within the configured threshold, soonest first."""
    from bims_ledger.config import config

    predictions = low_stock_predictions(
        ledger_service.load_chain(),
        window_days=config.analytics.velocity_window_days,
        threshold_days=config.analytics.prediction_threshold_days,
    )
    return [prediction.to_dict() for prediction in predictions]


@router.get("/anomalies-report")
def get_anomalies_report():
    """Business-rule, statistical and behavioural anomalies, newest first.

    User roles live outside this service, so no role directory is passed to
    :func:`anomaly_report`.  Only the role-independent rules fire here
    (off-hours activity, a skipped Warehouse, statistical outliers); the
    Admin-MOVE rule and the behavioural rules need a caller that can
    supply ``user_roles``.
    """
    from bims_ledger.config import config

    settings = config.analytics
    report = anomaly_report(
        ledger_service.load_chain(),
        sigma=settings.outlier_sigma,
        min_outlier_quantity=settings.outlier_min_quantity,
        business_hours_start=settings.business_hours_start,
        business_hours_end=settings.business_hours_end,
    )
    return report.to_dict()
