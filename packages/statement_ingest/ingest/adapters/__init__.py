"""Extractors that turn statement text into ``TransactionCandidate`` rows.

- ``tabular_csv``: delimited exports with keyword-mapped columns.
- ``freetext_pdf``: line-oriented text pulled out of PDF statements.
"""

from .freetext_pdf import extract_freetext
from .tabular_csv import extract_tabular

__all__ = ["extract_freetext", "extract_tabular"]
