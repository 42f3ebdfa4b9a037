"""Run the trial-outcome pipeline over all configured sessions.

Usage: python scripts/run_pipeline.py --config config/pipeline.yml [--out-dir outputs/] [--seed 141]
"""
from pathlib import Path
import argparse
import logging
import sys
from typing import Optional

from visdecision.config import load_config
from visdecision.integrate import EmptyCorpusError
from visdecision.pipeline import run_pipeline
from visdecision.report import write_report

repo_root = Path(__file__).resolve().parents[1]


def parse_args(argv: Optional[list] = None):
    p = argparse.ArgumentParser(description='Load sessions, build the trial feature table, fit and score the outcome classifier')
    p.add_argument('--config', type=Path, default=repo_root / 'config' / 'pipeline.yml',
                   help='Path to the pipeline YAML (default: config/pipeline.yml)')
    p.add_argument('--out-dir', type=Path, default=None, help='Override the output directory from the config')
    p.add_argument('--seed', type=int, default=None, help='Override the seed used for the split and the model')
    p.add_argument('--feature-table', type=Path, default=None,
                   help='Use a pre-integrated feature table CSV instead of session records')
    p.add_argument('--overwrite', action='store_true', help='Overwrite output files if they exist')
    p.add_argument('--verbose', action='store_true', help='Enable verbose logging')
    return p.parse_args(argv)


def configure_logging(verbose: bool):
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format='[%(levelname)s] %(message)s')


def main(argv: Optional[list] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    config = load_config(str(args.config))
    if args.out_dir is not None:
        config.out_dir = str(args.out_dir)
    if args.seed is not None:
        config.seed = args.seed
    if args.feature_table is not None:
        config.feature_table = str(args.feature_table)

    try:
        result = run_pipeline(config)
    except (EmptyCorpusError, FileNotFoundError) as exc:
        logging.error('%s', exc)
        return 1

    written = write_report(result, config.out_dir, top_n=config.top_n, overwrite=args.overwrite)
    m = result.metrics
    logging.info('Accuracy %.3f (%.0f%% CI %.3f-%.3f), sensitivity %.3f, specificity %.3f',
                 m['accuracy'], 100 * m['confidence'], m['accuracy_ci_low'], m['accuracy_ci_high'],
                 m['sensitivity'], m['specificity'])
    for _, row in result.importance.head(config.top_n).iterrows():
        logging.info('  #%d %s %.4f', row['rank'], row['feature'], row['importance'])
    logging.info('Wrote %d outputs to %s', len(written), config.out_dir)
    return 0


if __name__ == '__main__':
    sys.exit(main())
