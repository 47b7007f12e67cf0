#!/usr/bin/env python3
"""
Sample Data Generator
=====================

Generates synthetic online-retail line items for exercising the
segmentation pipeline without the real dataset.

Usage:
    python -m rfm_segmentation.data.generate_sample_data [output_dir]

This will create:
    - online_retail_clean.csv: Line-item transactions for RFM segmentation
    - test_transactions_small.csv: A small variant for quick runs
"""

import os
import sys
from datetime import timedelta

import numpy as np
import pandas as pd

PRODUCTS = [
    ('WHITE HANGING HEART T-LIGHT HOLDER', 2.55),
    ('REGENCY CAKESTAND 3 TIER', 12.75),
    ('JUMBO BAG RED RETROSPOT', 1.95),
    ('PARTY BUNTING', 4.95),
    ('LUNCH BAG RED RETROSPOT', 1.65),
    ('ASSORTED COLOUR BIRD ORNAMENT', 1.69),
    ('SET OF 3 CAKE TINS PANTRY DESIGN', 4.95),
    ('PACK OF 72 RETROSPOT CAKE CASES', 0.55),
    ('NATURAL SLATE HEART CHALKBOARD', 2.95),
    ('HEART OF WICKER SMALL', 1.65),
]

# (share of customers, mean lines per customer, mean days since last visit, basket scale)
CUSTOMER_TIERS = {
    'champion': (0.15, 60, 10, 8.0),
    'regular': (0.45, 20, 60, 3.0),
    'lapsed': (0.40, 5, 220, 1.0),
}


def generate_retail_transactions(
    n_customers: int = 500,
    start_date: str = '2010-12-01',
    end_date: str = '2011-12-09',
    return_rate: float = 0.02,
    missing_customer_rate: float = 0.0,
    random_state: int = 42
) -> pd.DataFrame:
    """
    Generate synthetic line-item transactions.

    Creates customers in three behavioural tiers with different:
    - Purchase frequency (lines per customer)
    - Recency of the last visit
    - Basket size

    Args:
        n_customers: Number of unique customers
        start_date: First possible invoice date
        end_date: Last possible invoice date
        return_rate: Share of lines recorded as returns (negative quantity)
        missing_customer_rate: Share of lines written without a customer id
        random_state: Random seed for reproducibility

    Returns:
        DataFrame with customer_id, invoice_id, invoice_date, description,
        quantity and unit_price columns
    """
    rng = np.random.RandomState(random_state)
    start = pd.Timestamp(start_date)
    end = pd.Timestamp(end_date)
    date_range = (end - start).days

    tier_names = list(CUSTOMER_TIERS)
    tier_shares = np.array([CUSTOMER_TIERS[t][0] for t in tier_names])
    tier_shares = tier_shares / tier_shares.sum()

    records = []
    invoice_number = 536365

    for i in range(n_customers):
        customer_id = str(12346 + i)
        tier = tier_names[rng.choice(len(tier_names), p=tier_shares)]
        _, mean_lines, mean_recency, basket_scale = CUSTOMER_TIERS[tier]

        n_lines = max(1, rng.poisson(mean_lines))
        last_visit = min(int(rng.exponential(mean_recency)), date_range)
        n_invoices = max(1, n_lines // 5)

        # Invoice dates between the start and the last visit
        offsets = np.sort(rng.randint(last_visit, date_range + 1, size=n_invoices))
        offsets[0] = last_visit
        invoice_dates = [
            end - timedelta(days=int(offset), hours=int(rng.randint(8, 18)),
                            minutes=int(rng.randint(0, 60)))
            for offset in offsets
        ]

        for line in range(n_lines):
            invoice_idx = line % n_invoices
            description, price = PRODUCTS[rng.randint(len(PRODUCTS))]
            quantity = int(max(1, rng.poisson(basket_scale * 2)))
            invoice_id = str(invoice_number + invoice_idx)

            if rng.uniform() < return_rate:
                quantity = -quantity
                invoice_id = 'C' + invoice_id

            records.append({
                'customer_id': customer_id,
                'invoice_id': invoice_id,
                'invoice_date': invoice_dates[invoice_idx],
                'description': description,
                'quantity': quantity,
                'unit_price': price
            })

        invoice_number += n_invoices

    df = pd.DataFrame(records)

    if missing_customer_rate > 0:
        missing = rng.uniform(size=len(df)) < missing_customer_rate
        df.loc[missing, 'customer_id'] = None

    df = df.sort_values('invoice_date', kind='mergesort').reset_index(drop=True)
    return df


def main():
    """Generate the sample datasets."""
    if len(sys.argv) > 1:
        output_dir = sys.argv[1]
    else:
        output_dir = os.path.join(os.getcwd(), 'data')
    os.makedirs(output_dir, exist_ok=True)

    print("Generating sample datasets...")

    transactions_df = generate_retail_transactions(missing_customer_rate=0.01)
    transactions_path = os.path.join(output_dir, 'online_retail_clean.csv')
    transactions_df.to_csv(transactions_path, index=False)
    print(f"    Saved {len(transactions_df)} records to {transactions_path}")

    small_df = generate_retail_transactions(n_customers=50)
    small_df.to_csv(os.path.join(output_dir, 'test_transactions_small.csv'), index=False)

    print("\nSample data generation complete!")
    print(f"  Transactions: {len(transactions_df)} lines, "
          f"{transactions_df['customer_id'].nunique()} customers")


if __name__ == '__main__':
    main()
