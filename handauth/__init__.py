"""
handauth Package - Handwritten Signature Verification
Per-region online feature statistics, template curation and a conjunctive
multi-area threshold decision.
"""

from .errors import GridConfigError, TemplateStateError
from .models import AreaType, FeatureType, FilterSettings, Sample, TemplateSettings
from .template import Template
from .scoring import Score
from .pipeline import SignaturePipeline, enroll, enroll_many, verify

__version__ = "1.0.0"
__all__ = [
    'AreaType', 'FeatureType', 'FilterSettings', 'Sample', 'TemplateSettings',
    'GridConfigError', 'TemplateStateError', 'Template', 'Score',
    'SignaturePipeline', 'enroll', 'enroll_many', 'verify'
]
