"""Column data type inference for root versions."""

import pandas as pd

from app.models.version import DataType


def infer_data_type(series: pd.Series) -> DataType:
    """Numeric (non-boolean) columns are quantitative, everything else qualitative."""
    if pd.api.types.is_bool_dtype(series):
        return DataType.QUALITATIVE
    if pd.api.types.is_numeric_dtype(series):
        return DataType.QUANTITATIVE
    return DataType.QUALITATIVE


def infer_data_types(df: pd.DataFrame) -> dict[str, DataType]:
    return {str(col): infer_data_type(df[col]) for col in df.columns}
