"""Data reduction methods: drop columns, PCA, sampling."""

from typing import Optional

from app.models.version import DataType
from pipeline.common.base import MethodConfigBuilder, register_method


@register_method
class DropColumnsBuilder(MethodConfigBuilder):
    method = "perform_drop_columns"
    technique = "data_reduction"
    description = "Remove the selected columns"

    def output_data_types(self, parent_types: dict[str, DataType]) -> Optional[dict[str, DataType]]:
        dropped = set(self._selected)
        return {col: dtype for col, dtype in parent_types.items() if col not in dropped}


@register_method
class PCABuilder(MethodConfigBuilder):
    """PCA over every quantitative column except the target.

    ``value`` is the explained variance threshold in (0, 1].
    """

    method = "perform_pca_reduction"
    technique = "data_reduction"
    description = "Project quantitative columns onto principal components"
    min_columns = 0
    sends_columns = False

    def __init__(self, data_types: dict[str, DataType]):
        super().__init__(data_types)
        self.value = 0.95

    @property
    def pca_columns(self) -> list[str]:
        return [
            col for col, dtype in self.data_types.items()
            if dtype == DataType.QUANTITATIVE and col != self.target
        ]

    def validate_selection(self) -> bool:
        if not self.target or self.target not in self.data_types:
            return False
        if len(self.pca_columns) < 2:
            return False
        try:
            threshold = float(self.value)
        except (TypeError, ValueError):
            return False
        return 0 < threshold <= 1


@register_method
class SamplingBuilder(MethodConfigBuilder):
    """Random sampling; ``value`` is a percentage of rows.

    When ``row_count`` is known the payload carries the absolute sample size.
    """

    method = "perform_sampling"
    technique = "data_reduction"
    description = "Keep a random sample of rows"
    min_columns = 0
    sends_columns = False

    def __init__(self, data_types: dict[str, DataType], row_count: Optional[int] = None):
        super().__init__(data_types)
        self.value = 75
        self.row_count = row_count

    def validate_selection(self) -> bool:
        try:
            percentage = float(self.value)
        except (TypeError, ValueError):
            return False
        return 0 < percentage <= 100

    def generate_payload(self):
        payload = super().generate_payload()
        if payload is not None and self.row_count is not None:
            payload.value = round(self.row_count * float(self.value) / 100)
        return payload
