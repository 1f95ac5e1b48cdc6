"""Data platform feature: tables for master data, raw operations and rollups."""

from app.features.data_platform.models import (
    CostEntry,
    DailyAggregate,
    FabricCutting,
    InventoryTransaction,
    JobStatus,
    Rate,
    Shipment,
    Style,
    Tailor,
    TailorJob,
    Vendor,
)

__all__ = [
    "CostEntry",
    "DailyAggregate",
    "FabricCutting",
    "InventoryTransaction",
    "JobStatus",
    "Rate",
    "Shipment",
    "Style",
    "Tailor",
    "TailorJob",
    "Vendor",
]
