"""
FinanzApp core

Personal finance bookkeeping for Dutch households and the self-employed
(ZZP): transactions with BTW splits, categories, budgets, quarterly VAT
deadlines, receipt text heuristics and CSV export.
"""

__version__ = "1.0.0"
