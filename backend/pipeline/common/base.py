"""Method configuration builder base class and registry."""

import logging
from abc import ABC
from typing import Any, Optional

import pandas as pd

from app.core.errors import ValidationError
from app.models.version import DataType
from app.schemas.version import ColumnParameters, MethodInvocation
from pipeline.common.data_types import infer_data_types

logger = logging.getLogger(__name__)


class MethodConfigBuilder(ABC):
    """Turns a column selection plus parameters into a method invocation payload.

    Every builder:
    - Is constructed from the parent version's column data types
    - Keeps per-column parameters for the selected columns
    - Returns None from generate_payload() when the selection is invalid
    """

    method: str = "unnamed_method"
    technique: str = ""
    description: str = ""
    min_columns: int = 1
    column_type: Optional[DataType] = None
    sends_columns: bool = True

    def __init__(self, data_types: dict[str, DataType]):
        self.data_types: dict[str, DataType] = {col: DataType(t) for col, t in data_types.items()}
        self._selected: list[str] = []
        self._parameters: dict[str, dict[str, Any]] = {}
        self.step: Any = None
        self.value: Any = None
        self.target: Optional[str] = None

    @classmethod
    def from_frame(cls, df: pd.DataFrame) -> "MethodConfigBuilder":
        return cls(infer_data_types(df))

    @property
    def available_columns(self) -> list[str]:
        if self.column_type is None:
            return list(self.data_types)
        return [col for col, dtype in self.data_types.items() if dtype == self.column_type]

    @property
    def selected_columns(self) -> list[str]:
        return list(self._selected)

    @property
    def column_parameters(self) -> dict[str, dict[str, Any]]:
        return {col: dict(self._parameters[col]) for col in self._selected}

    def select_columns(self, columns: list[str]) -> None:
        """Replace the selection, keeping parameters of columns that stay selected."""
        selected = list(dict.fromkeys(columns))
        parameters = {}
        for col in selected:
            if col in self._parameters:
                parameters[col] = self._parameters[col]
            else:
                dtype = self.data_types.get(col)
                parameters[col] = {
                    "step": self.default_step(col, dtype),
                    "value": self.default_value(col, dtype),
                }
        self._selected = selected
        self._parameters = parameters

    def set_column_parameter(self, column: str, step: Any = None, value: Any = None) -> None:
        if column not in self._parameters:
            raise ValidationError(f"Column '{column}' is not selected", extra={"column": column})
        self._parameters[column] = {"step": step, "value": value}

    def default_step(self, column: str, data_type: Optional[DataType]) -> Any:
        return None

    def default_value(self, column: str, data_type: Optional[DataType]) -> Any:
        return None

    def validate_selection(self) -> bool:
        """Return True when the current selection can be submitted."""
        if len(self._selected) < self.min_columns:
            return False
        available = set(self.available_columns)
        return all(col in available for col in self._selected)

    def generate_payload(self) -> Optional[MethodInvocation]:
        if not self.validate_selection():
            logger.info("Invalid selection for %s: %s", self.method, self._selected)
            return None

        return MethodInvocation(
            technique=self.technique,
            method=self.method,
            step=self.step,
            value=self.value,
            target=self.target,
            columns=self._build_columns() if self.sends_columns else None,
        )

    def output_data_types(self, parent_types: dict[str, DataType]) -> Optional[dict[str, DataType]]:
        """Data types of the produced version, or None to inherit the parent's."""
        return None

    def _build_columns(self) -> dict[str, ColumnParameters]:
        return {
            col: ColumnParameters(type=self.data_types[col], **self._parameters[col])
            for col in self._selected
        }


# Builder registry for lookup by method name
METHOD_REGISTRY: dict[str, type[MethodConfigBuilder]] = {}


def register_method(cls: type[MethodConfigBuilder]) -> type[MethodConfigBuilder]:
    """Decorator to register a method config builder class."""
    METHOD_REGISTRY[cls.method] = cls
    return cls


def get_builder(method: str, data_types: dict[str, DataType]) -> MethodConfigBuilder:
    builder_class = METHOD_REGISTRY.get(method)
    if builder_class is None:
        raise ValidationError(f"Unknown method '{method}'", extra={"available_methods": sorted(METHOD_REGISTRY)})
    return builder_class(data_types)
