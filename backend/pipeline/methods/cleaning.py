"""Data cleaning methods: missing values, inconsistencies, outliers, duplicates."""

from typing import Any, Optional

from app.models.version import DataType
from pipeline.common.base import MethodConfigBuilder, register_method

NUMERIC_STEPS = {"impute_mean", "impute_median", "impute_random", "remove", "impute_constant"}
CATEGORICAL_STEPS = {"impute_mode", "impute_random", "remove"}


class ImputationStyleBuilder(MethodConfigBuilder):
    """Per-column replacement strategy chosen by the column's data type."""

    technique = "data_cleaning"

    def default_step(self, column: str, data_type: Optional[DataType]) -> Any:
        if data_type == DataType.QUANTITATIVE:
            return "impute_mean"
        return "impute_mode"

    def validate_selection(self) -> bool:
        if not super().validate_selection():
            return False
        for col in self._selected:
            params = self._parameters[col]
            allowed = NUMERIC_STEPS if self.data_types[col] == DataType.QUANTITATIVE else CATEGORICAL_STEPS
            if params["step"] not in allowed:
                return False
            if params["step"] == "impute_constant" and params["value"] in (None, ""):
                return False
        return True


@register_method
class FixMissingBuilder(ImputationStyleBuilder):
    method = "fix_missing"
    description = "Impute or drop missing values per column"


@register_method
class FixInconsistenciesBuilder(ImputationStyleBuilder):
    method = "fix_inconsistencies"
    description = "Replace inconsistent categorical or numeric entries"


@register_method
class FixOutliersBuilder(ImputationStyleBuilder):
    method = "fix_outliers"
    description = "Replace or drop outlier values per column"


@register_method
class DropDuplicatesBuilder(MethodConfigBuilder):
    method = "perform_drop_duplicates"
    technique = "data_cleaning"
    description = "Drop duplicate rows or columns"
    min_columns = 0
    sends_columns = False

    def __init__(self, data_types: dict[str, DataType]):
        super().__init__(data_types)
        self.value = "row"

    def validate_selection(self) -> bool:
        return self.value in ("row", "column")
