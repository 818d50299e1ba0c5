"""Demonstrates fitting a tree on a DataFrame and querying marginal predictions.

fantree logging is disabled by default. Users opt in by calling ``enable_logging()``,
which returns a ``LoggingHandle``. The handle can be used as a context manager
(``with enable_logging(): ...``) or disabled manually via ``handle.disable()``.

Key concepts shown here:

- ``fit_fanova_tree_from_dataframe``: filters and encodes columns, fits a
  regression tree and precomputes the fANOVA caches in one call.
- ``marginalized_mean``: columns left out of the query are averaged over
  their whole domain.
- Cutoffs: leaves predicting outside ``[lower_cutoff, upper_cutoff]`` are
  excluded, and a query that only reaches excluded leaves returns NaN.
- ``log_format="full"`` adds the module and line number to each record.
"""

import math

import numpy as np
import polars as pl

from fantree import enable_logging, fit_fanova_tree_from_dataframe

rng = np.random.default_rng(0)
n_rows = 500
df_listings = pl.DataFrame({
    "neighbourhood": rng.choice(["centre", "harbour", "suburb"], size=n_rows),
    "floor_area": rng.uniform(30.0, 150.0, size=n_rows),
    "year_built": rng.integers(1950, 2024, size=n_rows),
})
df_listings = df_listings.with_columns(
    (
        pl.col("floor_area") * 3.0
        + pl.when(pl.col("neighbourhood") == "centre").then(150.0).otherwise(0.0)
        + (pl.col("year_built") - 1950) * 0.5
    ).alias("rent")
)

with enable_logging(level="DEBUG", log_format="full"):
    fitted = fit_fanova_tree_from_dataframe(df_listings, "rent", max_depth=6, random_state=0)

print(f"\nFeatures: {fitted.feature_names}")
print(f"Excluded: {fitted.excluded_features}")
print(f"Split values: {fitted.split_values()}")
print(f"Report: {fitted.report}\n")

# Average rent over every feature, then conditioned on one or two columns
print(f"Mean rent:                 {fitted.marginalized_mean({}):.1f}")
for neighbourhood in ("centre", "harbour", "suburb"):
    rent = fitted.marginalized_mean({"neighbourhood": neighbourhood})
    print(f"Mean rent in {neighbourhood:<8}:     {rent:.1f}")
print(f"Centre, 120 m2:            {fitted.marginalized_mean({'neighbourhood': 'centre', 'floor_area': 120.0}):.1f}")

# Exclude cheap listings; the per-leaf exclusions are logged at TRACE
with enable_logging(level="TRACE"):
    fitted.tree.precompute_domains(fitted.domains, lower_cutoff=300.0)
print(f"\nExcluded leaves: {fitted.report.excluded_leaf_count} of {fitted.report.leaf_count}")
small_suburb = fitted.marginalized_mean({"neighbourhood": "suburb", "floor_area": 35.0})
print(f"Suburb, 35 m2 above cutoff: {'undefined' if math.isnan(small_suburb) else f'{small_suburb:.1f}'}")
