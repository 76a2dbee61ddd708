"""
Multiple Comparison Correction for summary table p-values.

Adjustment is pure post-processing over p-values that were already computed;
no test is re-run.

USAGE:
    from multiple_comparisons import adjust_pvalues

    q = adjust_pvalues([0.01, 0.03, np.nan, 0.05], method="holm")

METHOD COMPARISON:
    - bonferroni: conservative family-wise error rate (FWER) control
    - holm: sequential FWER control, uniformly more powerful than Bonferroni
    - fdr_bh: Benjamini-Hochberg false discovery rate control
    - fdr_by: Benjamini-Yekutieli FDR control under arbitrary dependence
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
from statsmodels.stats.multitest import multipletests

from logger import get_logger

logger = get_logger(__name__)

METHOD_ALIASES = {
    "BH": "fdr_bh",
    "fdr": "fdr_bh",
    "BY": "fdr_by",
    "bonf": "bonferroni",
}
METHOD_LABELS = {
    "bonferroni": "Bonferroni correction",
    "holm": "Holm correction",
    "sidak": "Sidak correction",
    "holm-sidak": "Holm-Sidak correction",
    "simes-hochberg": "Hochberg correction",
    "hommel": "Hommel correction",
    "fdr_bh": "False discovery rate correction (Benjamini-Hochberg)",
    "fdr_by": "False discovery rate correction (Benjamini-Yekutieli)",
}


def normalize_method(method: str) -> str:
    """
    Resolve aliases and validate a correction method name.

    Raises:
        ValueError: For an unsupported method.
    """
    resolved = METHOD_ALIASES.get(method, method)
    if resolved not in METHOD_LABELS:
        raise ValueError(f"Unknown adjustment method '{method}'; choose from {sorted(METHOD_LABELS)}")
    return resolved


def adjust_pvalues(p_values: Sequence[float], method: str = "fdr_bh") -> np.ndarray:
    """
    Adjust a vector of p-values for multiple comparisons.

    NaN entries (variables without a test result) are excluded from the
    family and stay NaN in the output, which keeps the input order.
    """
    method = normalize_method(method)
    p = np.asarray(p_values, dtype=float)
    adjusted = np.full(p.shape, np.nan)
    valid = np.isfinite(p)

    if valid.any():
        _reject, corrected, _sidak, _bonf = multipletests(p[valid], method=method)
        adjusted[valid] = corrected

    logger.debug(f"Adjusted {int(valid.sum())} p-values with {method}")
    return adjusted
