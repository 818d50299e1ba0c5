"""DataFrame preprocessing: column classification, feature filtering, encoding, and domain inference."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Literal, NamedTuple

import numpy as np
import polars as pl
from sklearn.preprocessing import OrdinalEncoder

from fantree.domain import CategoricalDomain, ContinuousDomain

type ColumnType = Literal["numeric", "boolean", "categorical", "datetime", "duration", "excluded"]

# ---------------------------------------------------------------------------
# Column type classification
# ---------------------------------------------------------------------------

_DTYPE_TO_COLUMN_TYPE: dict[type[pl.DataType] | pl.DataType, ColumnType] = {
    pl.Int8: "numeric",
    pl.Int16: "numeric",
    pl.Int32: "numeric",
    pl.Int64: "numeric",
    pl.UInt8: "numeric",
    pl.UInt16: "numeric",
    pl.UInt32: "numeric",
    pl.UInt64: "numeric",
    pl.Float32: "numeric",
    pl.Float64: "numeric",
    pl.Boolean: "boolean",
    pl.String: "categorical",
    pl.Categorical: "categorical",
    pl.Enum: "categorical",
    pl.Date: "datetime",
    pl.Datetime: "datetime",
    pl.Duration: "duration",
}


def classify_column(dtype: pl.DataType) -> ColumnType:
    """Classify a Polars dtype into a broad feature category.

    Parameterized dtypes such as ``Datetime("us")`` do not hash like the bare
    class, so an ``isinstance`` fallback handles them.

    Args:
        dtype (pl.DataType): The Polars data type of the column.

    Returns:
        ColumnType: The broad category, ``"excluded"`` when unsupported.
    """
    result = _DTYPE_TO_COLUMN_TYPE.get(dtype)
    if result is not None:
        return result
    if isinstance(dtype, (pl.Datetime, pl.Date)):
        return "datetime"
    if isinstance(dtype, pl.Duration):
        return "duration"
    if isinstance(dtype, (pl.Enum, pl.Categorical)):
        return "categorical"
    return "excluded"


# ---------------------------------------------------------------------------
# Feature filtering
# ---------------------------------------------------------------------------

_HIGH_CARDINALITY_RATIO: float = 0.9


class ExcludedFeature(NamedTuple):
    """A feature column left out of fitting, with the reason.

    Attributes:
        name (str): The column name.
        reason (str): Human-readable explanation.
    """

    name: str
    reason: str


def filter_features(
    df: pl.DataFrame,
    feature_columns: Sequence[str],
) -> tuple[list[str], list[ExcludedFeature]]:
    """Split feature columns into kept and excluded ones.

    Columns are excluded when their dtype is unsupported, they are all null,
    they hold a single value (their domain would have size zero and collapse
    every subspace), or they are near-unique categorical identifiers.

    Args:
        df (pl.DataFrame): The DataFrame to inspect.
        feature_columns (Sequence[str]): Column names to evaluate.

    Returns:
        tuple[list[str], list[ExcludedFeature]]: ``(kept, excluded)``.
    """
    row_count = len(df)
    kept: list[str] = []
    excluded: list[ExcludedFeature] = []
    for col_name in feature_columns:
        reason = _get_exclusion_reason(df[col_name], row_count)
        if reason is None:
            kept.append(col_name)
        else:
            excluded.append(ExcludedFeature(name=col_name, reason=reason))
    return kept, excluded


def _get_exclusion_reason(series: pl.Series, row_count: int) -> str | None:
    column_type = classify_column(series.dtype)
    if column_type == "excluded":
        return "unsupported dtype"
    if series.is_null().all():
        return "all values are null"
    unique_count = series.drop_nulls().n_unique()
    if unique_count <= 1:
        return "single unique value"
    if column_type == "categorical" and row_count > 0 and unique_count / row_count > _HIGH_CARDINALITY_RATIO:
        return "high cardinality: likely unique identifier"
    return None


# ---------------------------------------------------------------------------
# Feature encoding
# ---------------------------------------------------------------------------


@dataclass
class FeatureEncoder:
    """How one DataFrame column was encoded, and the domain it spans.

    Attributes:
        column_name (str): The source column name.
        column_type (ColumnType): The broad type category of the column.
        domain (ContinuousDomain | CategoricalDomain): The feature's domain in
            encoded units.
        category_mapping (dict[int, str] | None): Maps codes back to labels;
            ``None`` for non-categorical columns.
    """

    column_name: str
    column_type: ColumnType
    domain: ContinuousDomain | CategoricalDomain
    category_mapping: dict[int, str] | None = field(default=None)

    @property
    def is_categorical(self) -> bool:
        """Whether the feature is modelled with a categorical domain."""
        return isinstance(self.domain, CategoricalDomain)

    def encode_value(self, value: Any) -> float:
        """Encode a single raw value the same way the column was encoded.

        ``None`` encodes to NaN, meaning "marginalize".

        Args:
            value (Any): A raw value from the source column, or ``None``.

        Returns:
            float: The encoded value.

        Raises:
            ValueError: If ``value`` is an unknown category label.
        """
        if value is None:
            return np.nan
        if self.category_mapping is not None:
            for code, label in self.category_mapping.items():
                if label == str(value):
                    return float(code)
            raise ValueError(f"Unknown category {value!r} for column '{self.column_name}'")
        if self.column_type in {"datetime", "duration"}:
            series = pl.Series(self.column_name, [value])
            column_array, _ = _encode_single_feature(series, self.column_type)
            return float(column_array[0])
        return float(value)


def encode_features(
    df: pl.DataFrame,
    feature_columns: Sequence[str],
) -> tuple[np.ndarray, list[FeatureEncoder]]:
    """Encode DataFrame feature columns into a 2-D float64 array with domains.

    - ``"numeric"`` → ``float64``, continuous domain ``[min, max]``.
    - ``"boolean"`` → ``0/1``, categorical domain with 2 categories.
    - ``"categorical"`` → ordinal codes, categorical domain over the observed categories.
    - ``"datetime"`` / ``"duration"`` → microseconds, continuous domain ``[min, max]``.

    Args:
        df (pl.DataFrame): The source DataFrame; feature columns must be null-free.
        feature_columns (Sequence[str]): Ordered column names to encode.

    Returns:
        tuple[np.ndarray, list[FeatureEncoder]]: ``(feature_matrix, encoders)``
            with one encoder per column.

    Raises:
        ValueError: If a column contains nulls.
    """
    column_arrays: list[np.ndarray] = []
    encoders: list[FeatureEncoder] = []
    for col_name in feature_columns:
        series = df[col_name]
        if series.null_count() > 0:
            raise ValueError(f"Feature column '{col_name}' contains null values. Drop or impute them first.")
        column_type = classify_column(series.dtype)
        column_array, category_mapping = _encode_single_feature(series, column_type)
        column_arrays.append(column_array)
        encoders.append(
            FeatureEncoder(
                column_name=col_name,
                column_type=column_type,
                domain=_infer_domain(column_array, column_type, category_mapping),
                category_mapping=category_mapping,
            )
        )
    feature_matrix = np.column_stack(column_arrays) if column_arrays else np.empty((len(df), 0), dtype=np.float64)
    return feature_matrix, encoders


def encode_target(series: pl.Series) -> np.ndarray:
    """Encode a numeric regression target as ``float64``.

    Args:
        series (pl.Series): The target column.

    Returns:
        np.ndarray: 1-D ``float64`` array.

    Raises:
        ValueError: If the target is not numeric or contains nulls.
    """
    if classify_column(series.dtype) not in {"numeric", "boolean"}:
        raise ValueError(f"Target column '{series.name}' must be numeric, got dtype {series.dtype}")
    if series.null_count() > 0:
        raise ValueError(f"Target column '{series.name}' contains null values. Remove or impute nulls before fitting.")
    return series.cast(pl.Float64).to_numpy(allow_copy=True).astype(np.float64)


# ---------------------------------------------------------------------------
# Private helpers
# ---------------------------------------------------------------------------


def _infer_domain(
    column_array: np.ndarray,
    column_type: ColumnType,
    category_mapping: dict[int, str] | None,
) -> ContinuousDomain | CategoricalDomain:
    """Infer the domain spanned by an encoded column.

    Args:
        column_array (np.ndarray): The encoded, null-free column.
        column_type (ColumnType): The broad type of the column.
        category_mapping (dict[int, str] | None): Category labels, if categorical.

    Returns:
        ContinuousDomain | CategoricalDomain: The inferred domain.
    """
    if category_mapping is not None:
        return CategoricalDomain(n_categories=len(category_mapping))
    if column_type == "boolean":
        return CategoricalDomain(n_categories=2)
    return ContinuousDomain(lower=float(np.min(column_array)), upper=float(np.max(column_array)))


def _make_category_mapping(labels: Any) -> dict[int, str]:
    return dict(enumerate(str(label) for label in labels))


def _encode_single_feature(
    series: pl.Series,
    column_type: ColumnType,
) -> tuple[np.ndarray, dict[int, str] | None]:
    """Convert one Polars Series to a 1-D float64 array.

    Args:
        series (pl.Series): The column to encode.
        column_type (ColumnType): The pre-classified type of the column.

    Returns:
        tuple[np.ndarray, dict[int, str] | None]: The encoded array and a
            ``{code: label}`` mapping for categorical columns.

    Raises:
        ValueError: If ``column_type`` cannot be encoded.
    """
    if column_type == "numeric":
        return series.to_numpy(allow_copy=True).astype(np.float64), None
    if column_type == "boolean":
        return series.cast(pl.Int8).to_numpy(allow_copy=True).astype(np.float64), None
    if column_type == "categorical":
        return _encode_categorical_series(series)
    if column_type == "datetime":
        return series.cast(pl.Datetime("us")).dt.epoch("us").to_numpy(allow_copy=True).astype(np.float64), None
    if column_type == "duration":
        return series.cast(pl.Duration("us")).dt.total_microseconds().to_numpy(allow_copy=True).astype(np.float64), None
    raise ValueError(f"Cannot encode column_type={column_type!r}")


def _encode_categorical_series(series: pl.Series) -> tuple[np.ndarray, dict[int, str]]:
    ordinal_encoder = OrdinalEncoder()
    raw_column = series.cast(pl.String).to_numpy(allow_copy=True).reshape(-1, 1)
    encoded_column = ordinal_encoder.fit_transform(raw_column).astype(np.float64).ravel()
    return encoded_column, _make_category_mapping(ordinal_encoder.categories_[0])
