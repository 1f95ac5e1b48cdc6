"""Financial module: effective-rate pricing, costs and P&L statements."""

from app.features.financial.rates import RateBook, RateRecord, load_rate_book
from app.features.financial.routes import router
from app.features.financial.schemas import CostBreakdown, PLStatement, RevenueBreakdown
from app.features.financial.service import FinancialCalculationService

__all__ = [
    "CostBreakdown",
    "FinancialCalculationService",
    "PLStatement",
    "RateBook",
    "RateRecord",
    "RevenueBreakdown",
    "load_rate_book",
    "router",
]
