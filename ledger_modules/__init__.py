"""
Ledger Modules.

Orchestration layers over the Ledger Kernel:
- ``inventory``: weighted-average costing, stock movements and valuation
- ``reporting``: trial balance, profit and loss, balance sheet, COGS and
  cash flow, all derived from posted journal lines
"""
