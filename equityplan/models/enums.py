"""Enumerations for equityplan."""

from enum import StrEnum


class GrantType(StrEnum):
    RSU = "RSU"
    ISO = "ISO"
    NSO = "NSO"
    ESPP = "ESPP"


class VestingScheduleType(StrEnum):
    STANDARD_4Y_1Y_CLIFF = "standard_4y_1y_cliff"
    STANDARD_4Y_QUARTERLY = "standard_4y_quarterly"
    CUSTOM = "custom"
    IMMEDIATE = "immediate"


class FilingStatus(StrEnum):
    SINGLE = "single"
    MARRIED_JOINT = "married_joint"


class TaxRegime(StrEnum):
    ORDINARY = "ordinary"
    LTCG = "ltcg"


class HoldingPeriod(StrEnum):
    SHORT_TERM = "SHORT_TERM"
    LONG_TERM = "LONG_TERM"


class DispositionType(StrEnum):
    QUALIFYING = "QUALIFYING"
    DISQUALIFYING = "DISQUALIFYING"


class AllocationMethod(StrEnum):
    FIFO_ESTIMATE = "FIFO_ESTIMATE"
    SELL_TO_COVER_ESTIMATE = "SELL_TO_COVER_ESTIMATE"


class RiskLevel(StrEnum):
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"


class WarningCategory(StrEnum):
    MISSING_STATE_RATE = "MISSING_STATE_RATE"
    MISSING_LTCG_RATE = "MISSING_LTCG_RATE"
    MISSING_HISTORICAL_PRICE = "MISSING_HISTORICAL_PRICE"
    MISSING_ESTIMATED_INCOME = "MISSING_ESTIMATED_INCOME"
    MISSING_AMT_TABLE = "MISSING_AMT_TABLE"
    MISSING_RATE_YEAR = "MISSING_RATE_YEAR"
    UNATTRIBUTED_SHARES = "UNATTRIBUTED_SHARES"
    ROUNDING_ABSORBED = "ROUNDING_ABSORBED"
    UNKNOWN_GRANT = "UNKNOWN_GRANT"
