"""In-memory transaction ledger fed by parse results.

Holds the transactions of one import batch: the first document replaces
the state, later documents are merged with de-duplication. Aggregations
are computed with pandas over the held transactions; every money total
still goes through the DecimalCalculator.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Tuple

import pandas as pd

from ..models.core import AccountInfo, ParseResult, Summary, Transaction, INCOME, EXPENSE
from .calculator import DecimalCalculator, default_calculator
from .categorizer import TransactionCategorizer, default_categorizer


logger = logging.getLogger(__name__)

STAT_COLUMNS = ['category', 'category_name', 'count', 'income', 'expense', 'total']
MONTHLY_COLUMNS = ['month', 'income', 'expense', 'count']
DAILY_COLUMNS = ['date', 'income', 'expense', 'count']


def dedup_key(transaction: Transaction) -> Tuple[str, str, Decimal]:
    """Composite identity used when merging documents: date, time and amount"""
    return (transaction.date.isoformat(), transaction.time, transaction.amount)


class TransactionLedger:
    """Transactions of the current batch plus the header of the loaded statement"""

    def __init__(self, calculator: Optional[DecimalCalculator] = None,
                 categorizer: Optional[TransactionCategorizer] = None):
        self.calculator = calculator or default_calculator
        self.categorizer = categorizer or default_categorizer
        self.transactions: List[Transaction] = []
        self.institution_name = ""
        self.account_info: Optional[AccountInfo] = None
        self.parsed_at: Optional[datetime] = None

    def __len__(self) -> int:
        return len(self.transactions)

    def load_parse_result(self, result: ParseResult):
        """Replace all current state with one statement's transactions"""
        self.transactions = list(result.transactions)
        self.institution_name = result.institution_name
        self.account_info = result.account_info
        self.parsed_at = datetime.now()
        logger.info(f"Loaded {len(self.transactions)} transactions from {result.source_file or result.institution_name}")

    def append_transactions(self, transactions: Iterable[Transaction]) -> int:
        """Merge transactions not already held; returns how many were added.

        Held transactions are matched by (date, time, amount). The merged
        list is ordered newest first.
        """
        existing = {dedup_key(t) for t in self.transactions}
        new_transactions = [t for t in transactions if dedup_key(t) not in existing]

        self.transactions = sorted(
            self.transactions + new_transactions,
            key=lambda t: t.datetime,
            reverse=True,
        )

        logger.info(f"Appended {len(new_transactions)} transactions, {len(self.transactions)} held")
        return len(new_transactions)

    def remove_transactions_by_file(self, source_file: str) -> int:
        before = len(self.transactions)
        self.transactions = [t for t in self.transactions if t.source_file != source_file]
        removed = before - len(self.transactions)
        logger.info(f"Removed {removed} transactions from {source_file}")
        return removed

    def get_transaction(self, transaction_id: str) -> Optional[Transaction]:
        for transaction in self.transactions:
            if transaction.id == transaction_id:
                return transaction
        return None

    def update_transaction_category(self, transaction_id: str, category_id: str) -> bool:
        """Re-categorize one transaction; unknown category ids are rejected"""
        category = self.categorizer.get_category(category_id)
        if category is None:
            raise ValueError(f"Unknown category: {category_id}")

        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            return False

        transaction.category = category.id
        transaction.category_info = category
        return True

    def update_transaction_note(self, transaction_id: str, note: str) -> bool:
        transaction = self.get_transaction(transaction_id)
        if transaction is None:
            return False
        transaction.note = note
        return True

    def clear_all(self):
        self.transactions = []
        self.institution_name = ""
        self.account_info = None
        self.parsed_at = None

    def summary(self) -> Summary:
        income = [t for t in self.transactions if t.type == INCOME]
        expense = [t for t in self.transactions if t.type == EXPENSE]
        total_income = self.calculator.sum_transactions(income)
        total_expense = self.calculator.sum_transactions(expense)
        return Summary(
            total_income=total_income,
            total_expense=total_expense,
            balance=self.calculator.subtract(total_income, total_expense),
            transaction_count=len(self.transactions),
            income_count=len(income),
            expense_count=len(expense),
        )

    def date_range(self) -> Tuple[Optional[date], Optional[date]]:
        if not self.transactions:
            return None, None
        dates = sorted(t.date for t in self.transactions)
        return dates[0], dates[-1]

    def to_dataframe(self) -> pd.DataFrame:
        """One row per transaction; money columns keep their Decimal values"""
        records = []
        for t in self.transactions:
            records.append({
                'id': t.id,
                'date': t.date,
                'time': t.time,
                'month': t.date.strftime('%Y-%m'),
                'type': t.type,
                'amount': t.amount,
                'income': t.amount if t.type == INCOME else Decimal(0),
                'expense': t.amount if t.type == EXPENSE else Decimal(0),
                'category': t.category,
                'category_name': t.category_info.name if t.category_info else t.category,
                'description': t.description,
                'counterparty': t.counterparty,
                'source_file': t.source_file,
            })
        return pd.DataFrame.from_records(records, columns=[
            'id', 'date', 'time', 'month', 'type', 'amount', 'income', 'expense',
            'category', 'category_name', 'description', 'counterparty', 'source_file',
        ])

    def _aggregate(self, df: pd.DataFrame, keys: List[str]) -> pd.DataFrame:
        grouped = df.groupby(keys, sort=False)
        stats = grouped.agg(
            count=('id', 'size'),
            income=('income', self.calculator.sum),
            expense=('expense', self.calculator.sum),
        ).reset_index()
        return stats

    def category_stats(self) -> pd.DataFrame:
        """Per-category count and totals, largest expense first"""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=STAT_COLUMNS)

        stats = self._aggregate(df, ['category', 'category_name'])
        stats['total'] = [self.calculator.add(i, e) for i, e in zip(stats['income'], stats['expense'])]
        stats['_expense_sort'] = stats['expense'].astype(float)
        stats = stats.sort_values('_expense_sort', ascending=False, kind='stable').drop(columns='_expense_sort')
        return stats[STAT_COLUMNS].reset_index(drop=True)

    def monthly_stats(self) -> pd.DataFrame:
        """Income and expense per YYYY-MM, oldest month first"""
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=MONTHLY_COLUMNS)

        stats = self._aggregate(df, ['month']).sort_values('month')
        return stats[MONTHLY_COLUMNS].reset_index(drop=True)

    def daily_stats(self) -> pd.DataFrame:
        df = self.to_dataframe()
        if df.empty:
            return pd.DataFrame(columns=DAILY_COLUMNS)

        stats = self._aggregate(df, ['date']).sort_values('date')
        return stats[DAILY_COLUMNS].reset_index(drop=True)

    def to_records(self) -> List[Dict[str, Any]]:
        return [t.to_dict() for t in self.transactions]
