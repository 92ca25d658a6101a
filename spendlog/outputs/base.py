# spendlog/outputs/base.py
from abc import ABC, abstractmethod


class BaseOutput(ABC):
    @abstractmethod
    def write(self, transactions, year_month):
        """
        Write one month of transaction views and return the output path.
        Views are the dicts returned by ``database.list_transactions``.
        """
        pass
