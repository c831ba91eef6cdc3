"""
Services Package
"""
from examgate.services.scoring_service import ScoringService
from examgate.services.attempt_service import AttemptService
from examgate.services.assessment_service import AssessmentService
from examgate.services.results_service import ResultsService
from examgate.services.proctoring import ProctorMonitor, ProctorRegistry, proctor_registry

__all__ = [
    'ScoringService',
    'AttemptService',
    'AssessmentService',
    'ResultsService',
    'ProctorMonitor',
    'ProctorRegistry',
    'proctor_registry',
]
