"""Read-only analytics computed from the chain."""

from bims_ledger.analytics.anomalies import AnomalyReport, anomaly_report
from bims_ledger.analytics.predictions import LowStockPrediction, low_stock_predictions

__all__ = ["AnomalyReport", "LowStockPrediction", "anomaly_report", "low_stock_predictions"]
