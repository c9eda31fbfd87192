"""Planning engines."""

from equityplan.engines.amt import AMTCalculator, AMTCapacitySchedule, ExemptionPhaseoutSchedule
from equityplan.engines.lots import LotAllocationEngine
from equityplan.engines.projection import ProjectionAggregator
from equityplan.engines.qualification import ESPPQualificationTracker, ISOQualificationTracker
from equityplan.engines.rates import RateTable
from equityplan.engines.scenarios import ISOScenarioEngine
from equityplan.engines.tax import TaxEngine
from equityplan.engines.vesting import VestingScheduleGenerator
from equityplan.engines.withholding import WithholdingAnalyzer

__all__ = [
    "AMTCalculator",
    "AMTCapacitySchedule",
    "ESPPQualificationTracker",
    "ExemptionPhaseoutSchedule",
    "ISOQualificationTracker",
    "ISOScenarioEngine",
    "LotAllocationEngine",
    "ProjectionAggregator",
    "RateTable",
    "TaxEngine",
    "VestingScheduleGenerator",
    "WithholdingAnalyzer",
]
