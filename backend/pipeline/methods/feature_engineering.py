"""Feature engineering methods: binning, combining, encoding."""

from typing import Any, Optional

from app.models.version import DataType
from pipeline.common.base import MethodConfigBuilder, register_method

BINNING_STRATEGIES = ("equal_width", "equal_depth")
COMBINE_OPERATIONS = ("+", "-", "*", "/", "%/%", "%%", "^")
MIN_BINS = 2
MAX_BINS = 20


@register_method
class BinningBuilder(MethodConfigBuilder):
    """Per-column binning; step is the strategy and value the bin count."""

    method = "perform_binning"
    technique = "feature_engineering"
    description = "Discretize quantitative columns into bins"
    column_type = DataType.QUANTITATIVE

    def default_step(self, column: str, data_type: Optional[DataType]) -> Any:
        return "equal_width"

    def default_value(self, column: str, data_type: Optional[DataType]) -> Any:
        return 3

    def validate_selection(self) -> bool:
        if not super().validate_selection():
            return False
        for col in self._selected:
            params = self._parameters[col]
            if params["step"] not in BINNING_STRATEGIES:
                return False
            value = params["value"]
            if isinstance(value, bool) or not isinstance(value, int):
                return False
            if not MIN_BINS <= value <= MAX_BINS:
                return False
        return True


@register_method
class CombineFeaturesBuilder(MethodConfigBuilder):
    method = "perform_combine_features"
    technique = "feature_engineering"
    description = "Create a new column from an arithmetic combination of columns"
    min_columns = 2
    column_type = DataType.QUANTITATIVE

    def __init__(self, data_types: dict[str, DataType]):
        super().__init__(data_types)
        self.step = "+"

    @property
    def combined_column_name(self) -> Optional[str]:
        if len(self._selected) < 2:
            return None
        if len(self._selected) == 2:
            return f"Combined_{self._selected[0]}_{self.step}_{self._selected[1]}"
        return f"Combined_Features_{self.step}"

    def validate_selection(self) -> bool:
        return super().validate_selection() and self.step in COMBINE_OPERATIONS

    def output_data_types(self, parent_types: dict[str, DataType]) -> Optional[dict[str, DataType]]:
        name = self.combined_column_name
        if name is None:
            return None
        return {**parent_types, name: DataType.QUANTITATIVE}


@register_method
class LabelEncodingBuilder(MethodConfigBuilder):
    method = "perform_label_encoding"
    technique = "feature_engineering"
    description = "Replace categories with integer codes"
    column_type = DataType.QUALITATIVE

    def output_data_types(self, parent_types: dict[str, DataType]) -> Optional[dict[str, DataType]]:
        encoded = set(self._selected)
        return {
            col: DataType.QUANTITATIVE if col in encoded else dtype
            for col, dtype in parent_types.items()
        }


@register_method
class OneHotEncodingBuilder(MethodConfigBuilder):
    method = "perform_one_hot_encoding"
    technique = "feature_engineering"
    description = "Expand categories into binary indicator columns"
    column_type = DataType.QUALITATIVE
