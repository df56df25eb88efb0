"""Data transformation methods: normalization, standardization, skewness."""

from typing import Any, Optional

from app.models.version import DataType
from pipeline.common.base import MethodConfigBuilder, register_method

SKEWNESS_STEPS = ("log", "sqrt", "reciprocal")


@register_method
class NormalizationBuilder(MethodConfigBuilder):
    method = "perform_normalization"
    technique = "data_transformation"
    description = "Min-max scale quantitative columns"
    column_type = DataType.QUANTITATIVE


@register_method
class StandardizationBuilder(MethodConfigBuilder):
    # Method name matches the processor's endpoint contract.
    method = "perform_standarization"
    technique = "data_transformation"
    description = "Scale quantitative columns to zero mean and unit variance"
    column_type = DataType.QUANTITATIVE


@register_method
class SkewnessBuilder(MethodConfigBuilder):
    method = "fix_skewness"
    technique = "data_transformation"
    description = "Reduce skew with a log, square-root or reciprocal transform"
    column_type = DataType.QUANTITATIVE

    def default_step(self, column: str, data_type: Optional[DataType]) -> Any:
        return "log"

    def validate_selection(self) -> bool:
        if not super().validate_selection():
            return False
        return all(self._parameters[col]["step"] in SKEWNESS_STEPS for col in self._selected)
