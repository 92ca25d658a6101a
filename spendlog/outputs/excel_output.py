# spendlog/outputs/excel_output.py

"""Excel output module backed by XlsxWriter.

Writes one month of transactions to a workbook with two worksheets: the
month itself as an Excel table, and a ``Summary`` worksheet with income,
expense and net totals followed by the spend per item category.
"""

from __future__ import annotations

from datetime import datetime
import logging
import os

import xlsxwriter

from spendlog.outputs.base import BaseOutput

logger = logging.getLogger(__name__)


class ExcelOutput(BaseOutput):
    """Generate a local Excel workbook for a single month."""

    MONTH_FMT = "%B %Y"
    SUMMARY = "Summary"
    HEADERS = ["date", "item", "item category", "payment category", "amount", "notes"]

    def __init__(self, config: dict):
        self.config = config
        self.output_dir = config.get("output_dir", "data")
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, transactions, year_month):
        out_path = os.path.join(self.output_dir, f"Spendlog-{year_month}.xlsx")
        sheet_name = datetime.strptime(year_month, "%Y-%m").strftime(self.MONTH_FMT)

        workbook = xlsxwriter.Workbook(out_path)
        amount_fmt = workbook.add_format({"num_format": "#,##0.00"})

        ws = workbook.add_worksheet(sheet_name)
        ws.freeze_panes(1, 0)
        ws.write_row(0, 0, self.HEADERS)

        rows = sorted(
            transactions,
            key=lambda tx: (tx["transaction_date"], tx["transaction_id"]),
        )
        for row_idx, tx in enumerate(rows, start=1):
            ws.write_row(row_idx, 0, [
                tx["transaction_date"],
                tx["item_name"],
                tx["item_category"] or "",
                tx["payment_category"] or "",
            ])
            ws.write_number(row_idx, 4, float(tx["amount"]), amount_fmt)
            ws.write(row_idx, 5, tx["notes"] or "")

        ws.set_column(4, 4, None, amount_fmt)
        if rows:
            ws.add_table(0, 0, len(rows), len(self.HEADERS) - 1, {
                "columns": [{"header": h} for h in self.HEADERS]
            })

        summary_ws = workbook.add_worksheet(self.SUMMARY)
        summary_ws.set_column(1, 1, None, amount_fmt)
        for row_idx, row in enumerate(self._build_summary_rows(rows)):
            summary_ws.write_row(row_idx, 0, row)

        workbook.close()
        logger.info("Written Excel workbook %s", out_path)
        return out_path

    def _build_summary_rows(self, transactions):
        income = 0.0
        expense = 0.0
        by_category = {}
        for tx in transactions:
            amount = float(tx["amount"] or 0)
            if amount < 0:
                income += -amount
            else:
                expense += amount
            category = (tx["item_category"] or "").strip() or "uncategorized"
            by_category[category] = by_category.get(category, 0) + amount

        category_rows = [
            [category, total]
            for category, total in sorted(by_category.items(), key=lambda item: (-item[1], item[0]))
        ]
        return [
            ["Income", income],
            ["Expense", expense],
            ["Net", income - expense],
            [],
            ["Category", "Total"],
        ] + category_rows
