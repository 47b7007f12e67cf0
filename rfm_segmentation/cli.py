#!/usr/bin/env python3
"""
RFM Segmentation - Command Line Runner
======================================

Runs the segmentation pipeline once and logs the results.

Usage:
    rfm-segment --data data/online_retail_clean.csv
    rfm-segment --data data/online_retail_clean.csv --segment Champions
    rfm-segment --data data/online_retail_clean.csv --customer 12346
    rfm-segment --sample 300 --n-clusters 4

Examples:
    # Segment with 4 clusters and a different seed
    rfm-segment --data transactions.csv --n-clusters 4 --seed 7

    # Fail on any unparseable row instead of skipping it
    rfm-segment --data transactions.csv --strictness strict
"""

import argparse
import sys
from typing import Optional, List

from loguru import logger

from rfm_segmentation.config import load_config, CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH, STRICTNESS_LEVELS
from rfm_segmentation.customer_segmentation import ALL_SEGMENTS, SegmentAnalyzer
from rfm_segmentation.data import generate_retail_transactions
from rfm_segmentation.exceptions import SegmentationError
from rfm_segmentation.serving import SegmentationPipeline, SnapshotStore, SegmentQueryService


def setup_logging(log_level: str = "INFO"):
    """Configure logging."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=log_level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='rfm-segment',
        description='RFM Customer Segmentation',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        '--data',
        type=str,
        help='Path to transaction file (default: data.path from the config)'
    )
    source.add_argument(
        '--sample',
        type=int,
        metavar='N_CUSTOMERS',
        help='Segment a synthetic dataset with this many customers'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help=f'Path to configuration file (default: ${CONFIG_ENV_VAR}, then {DEFAULT_CONFIG_PATH})'
    )

    parser.add_argument(
        '--n-clusters',
        type=int,
        default=None,
        help='Number of clusters (overrides the config)'
    )

    parser.add_argument(
        '--seed',
        type=int,
        default=None,
        help='Random seed for K-Means (overrides the config)'
    )

    parser.add_argument(
        '--strictness',
        choices=list(STRICTNESS_LEVELS),
        default=None,
        help='Malformed row policy (overrides the config)'
    )

    parser.add_argument(
        '--segment',
        type=str,
        default=ALL_SEGMENTS,
        help='Segment to summarize'
    )

    parser.add_argument(
        '--customer',
        type=str,
        default=None,
        help='Customer ID to profile'
    )

    parser.add_argument(
        '--log-level',
        type=str,
        default=None,
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (overrides the config)'
    )

    return parser


def run_segmentation(args, config) -> SegmentQueryService:
    """Run the pipeline and log segment and customer summaries."""
    if args.n_clusters is not None:
        config['segmentation']['n_clusters'] = args.n_clusters
    if args.seed is not None:
        config['segmentation']['random_state'] = args.seed
    if args.strictness is not None:
        config['data']['strictness'] = args.strictness

    if args.sample is not None:
        source = generate_retail_transactions(n_customers=args.sample)
    else:
        source = args.data or config['data'].get('path')

    store = SnapshotStore(SegmentationPipeline.from_config(config), source=source)
    snapshot = store.reload()
    queries = SegmentQueryService(store)

    logger.info(f"Reference date: {snapshot.reference_date.date()}")
    logger.info(f"Load report: {snapshot.load_report.to_dict()}")
    if snapshot.metrics['silhouette_score'] is not None:
        logger.info(f"Silhouette Score: {snapshot.metrics['silhouette_score']:.3f}")

    for row in queries.segment_breakdown().itertuples(index=False):
        logger.info(
            f"Cluster {row.cluster_id} '{row.segment_label}': {row.customer_count} customers "
            f"({row.customer_share:.1f}%), revenue share {row.revenue_share:.1f}%, "
            f"R={row.avg_recency:.1f} F={row.avg_frequency:.1f} M={row.avg_monetary:.2f}"
        )

    insights = SegmentAnalyzer().analyze_segments(snapshot.segments)
    for feature, test in insights['statistical_tests'].items():
        logger.debug(f"Kruskal-Wallis {feature}: p={test['kruskal_p_value']:.4f}")

    subset = queries.filter_by_segment(args.segment)
    stats = queries.summary_stats(subset)
    logger.info(
        f"Segment '{args.segment}': {stats['count']} customers, "
        f"total revenue {stats['total_monetary']:.2f}, "
        f"avg monetary {stats['avg_monetary']:.2f}, "
        f"avg frequency {stats['avg_frequency']:.1f}"
    )

    if args.customer:
        profile = queries.customer_profile(args.customer)
        logger.info(
            f"Customer {profile['customer_id']}: segment {profile['segment_label']}, "
            f"recency {profile['recency']} days, frequency {profile['frequency']}, "
            f"monetary {profile['monetary']:.2f}"
        )
        daily = queries.customer_daily_revenue(args.customer)
        logger.info(f"Customer {profile['customer_id']} purchased on {len(daily)} days")

    return queries


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    setup_logging(args.log_level or config['logging']['level'])

    if args.sample is None and not (args.data or config['data'].get('path')):
        parser.error("--data required when the config has no data.path")

    try:
        run_segmentation(args, config)
    except (SegmentationError, FileNotFoundError, ValueError) as e:
        logger.error(f"Segmentation failed: {e}")
        return 1

    return 0


if __name__ == '__main__':
    sys.exit(main())
