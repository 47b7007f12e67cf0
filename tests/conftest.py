"""Shared fixtures for the segmentation tests."""

import pandas as pd
import pytest

from rfm_segmentation.data import generate_retail_transactions
from rfm_segmentation.serving import SegmentationPipeline, SnapshotStore, SegmentQueryService


def _lines(customer_id, dates, quantity, unit_price, prefix):
    return [
        {
            'customer_id': customer_id,
            'invoice_id': f'{prefix}{i:03d}',
            'invoice_date': date,
            'description': f'ITEM {prefix}{i}',
            'quantity': quantity,
            'unit_price': unit_price,
        }
        for i, date in enumerate(dates)
    ]


@pytest.fixture
def three_customer_raw():
    """
    Three clearly separated customers:
    A spends 1000 over 10 recent lines, B 500 over 5 older lines,
    C 10 in a single old line.
    """
    a_dates = [f'2011-11-{day:02d} 10:00' for day in range(21, 30)] + ['2011-12-09 10:00']
    b_dates = ['2011-10-01 09:30', '2011-10-08 09:30', '2011-10-15 09:30',
               '2011-10-22 09:30', '2011-11-01 09:30']
    c_dates = ['2011-06-01 10:00']

    rows = (
        _lines('A', a_dates, 10, 10.0, 'A')
        + _lines('B', b_dates, 5, 20.0, 'B')
        + _lines('C', c_dates, 1, 10.0, 'C')
    )
    return pd.DataFrame(rows)


@pytest.fixture
def sample_raw():
    """Synthetic line items for 60 customers, some returns included."""
    return generate_retail_transactions(n_customers=60, random_state=7)


@pytest.fixture
def pipeline():
    return SegmentationPipeline()


@pytest.fixture
def loaded_store(pipeline, sample_raw):
    store = SnapshotStore(pipeline, source=sample_raw)
    store.reload()
    return store


@pytest.fixture
def queries(loaded_store):
    return SegmentQueryService(loaded_store)
