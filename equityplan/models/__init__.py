"""Data models for equityplan."""

from equityplan.models.client import Client, PlannedExercise
from equityplan.models.enums import (
    AllocationMethod,
    DispositionType,
    FilingStatus,
    GrantType,
    HoldingPeriod,
    RiskLevel,
    TaxRegime,
    VestingScheduleType,
    WarningCategory,
)
from equityplan.models.grant import (
    CustomVestingDate,
    ESPPGrant,
    Grant,
    ISOGrant,
    NSOGrant,
    RSUGrant,
    VestingPrice,
)
from equityplan.models.results import (
    AggregatedVestingEvent,
    AMTStats,
    ConcentrationReport,
    EffectiveRates,
    EngineWarning,
    GrantStatus,
    ISOQualification,
    LotAllocation,
    TaxBreakdown,
    VestingEvent,
    VestingSchedule,
)

__all__ = [
    "AggregatedVestingEvent",
    "AllocationMethod",
    "AMTStats",
    "Client",
    "ConcentrationReport",
    "CustomVestingDate",
    "DispositionType",
    "EffectiveRates",
    "EngineWarning",
    "ESPPGrant",
    "FilingStatus",
    "Grant",
    "GrantStatus",
    "GrantType",
    "HoldingPeriod",
    "ISOGrant",
    "ISOQualification",
    "LotAllocation",
    "NSOGrant",
    "PlannedExercise",
    "RiskLevel",
    "RSUGrant",
    "TaxBreakdown",
    "TaxRegime",
    "VestingEvent",
    "VestingPrice",
    "VestingSchedule",
    "VestingScheduleType",
    "WarningCategory",
]
