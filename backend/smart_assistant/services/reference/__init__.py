"""Static reference tables loaded once at startup."""

from .loader import ReferenceData, KeywordRule, CommonQueryPattern, load_reference_data

__all__ = ["ReferenceData", "KeywordRule", "CommonQueryPattern", "load_reference_data"]
