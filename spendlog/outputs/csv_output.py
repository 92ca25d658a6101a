# spendlog/outputs/csv_output.py

import csv
import logging
import os

from spendlog.outputs.base import BaseOutput

logger = logging.getLogger(__name__)

COLUMNS = [
    'transaction_id',
    'transaction_date',
    'item_name',
    'item_category',
    'payment_category',
    'amount',
    'notes',
]


class CSVOutput(BaseOutput):
    """
    Writes a month of transactions to Spendlog-<YYYY-MM>.csv, sorted by date
    (oldest to latest) so the file reads like a ledger.
    """
    def __init__(self, config):
        self.config     = config
        self.output_dir = config.get('output_dir', 'data')
        os.makedirs(self.output_dir, exist_ok=True)

    def write(self, transactions, year_month):
        rows = sorted(
            transactions,
            key=lambda tx: (tx['transaction_date'], tx['transaction_id'])
        )
        out_path = os.path.join(self.output_dir, f"Spendlog-{year_month}.csv")

        with open(out_path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow(COLUMNS)
            for tx in rows:
                writer.writerow([
                    tx['transaction_id'],
                    tx['transaction_date'],
                    tx['item_name'],
                    tx['item_category'] or '',
                    tx['payment_category'] or '',
                    f"{float(tx['amount']):.2f}",
                    tx['notes'] or '',
                ])

        logger.info("Written %d transactions to %s", len(rows), out_path)
        return out_path
