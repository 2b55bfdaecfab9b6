"""
Pool records and the pure calculations derived from them.
"""

from .chemistry import ChemicalParameter, SeverityBand, classify_pool, classify_reading
from .models import (
    Client,
    FilterType,
    GoogleCredentials,
    InvalidTransitionError,
    Payment,
    PaymentStatus,
    Pool,
    PoolMaterial,
    PoolShape,
    Product,
    ProductUsage,
    Visit,
    VisitStatus,
    VolumeMode,
    WaterQuality,
)
from .volume import apply_volume, calculate_volume

__all__ = [
    "ChemicalParameter",
    "SeverityBand",
    "classify_pool",
    "classify_reading",
    "Client",
    "FilterType",
    "GoogleCredentials",
    "InvalidTransitionError",
    "Payment",
    "PaymentStatus",
    "Pool",
    "PoolMaterial",
    "PoolShape",
    "Product",
    "ProductUsage",
    "Visit",
    "VisitStatus",
    "VolumeMode",
    "WaterQuality",
    "apply_volume",
    "calculate_volume",
]
