#!/usr/bin/env python3
"""
Entry point for swath bathymetry beam geometry recomputation.

Usage: main.py <job.json>
"""

import sys
import logging
from pathlib import Path

# Setup logging
# Create logs directory if it doesn't exist
log_dir = Path(__file__).parent / 'logs'
log_dir.mkdir(exist_ok=True)

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_dir / 'preprocess.log', encoding='utf-8'),
        logging.StreamHandler()
    ]
)

# Add root directory to path
_root = Path(__file__).parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from swathcore import SwathPreprocessor, ProcessingSummary
from swathdata.data_provider import DataProvider
from swathdata.ancillary_writer import AncillaryWriter

logger = logging.getLogger(__name__)

OUTPUT_SUFFIX = '.jsonl'


def run_job(job_path: str) -> ProcessingSummary:
    """
    Runs one processing job.

    Args:
        job_path: Path to the job JSON file

    Returns:
        ProcessingSummary of the run
    """
    provider = DataProvider()
    job = provider.load_job(Path(job_path).resolve())

    profile = provider.load_sound_velocity_profile(job.svp_file) if job.svp_file else None
    latency = provider.load_latency_model(job.latency_file) if job.latency_file else None
    offsets = provider.load_sensor_offsets(job.offsets_file) if job.offsets_file else None

    preprocessor = SwathPreprocessor(job.config, offsets, profile, latency)

    output_root = Path(job.output_root)
    if not output_root.is_absolute():
        output_root = provider.data_dir / output_root
    output_path = output_root.with_name(output_root.name + OUTPUT_SUFFIX)

    count = provider.write_pings(output_path, preprocessor.run(lambda: provider.iter_records(job)))
    logger.info(f"Wrote {count} corrected pings to {output_path}")

    if job.config.write_ancillary:
        AncillaryWriter(output_root).write(preprocessor)

    return preprocessor.summary


def main():
    """Main entry point."""
    if len(sys.argv) != 2:
        print(__doc__.strip().splitlines()[-1], file=sys.stderr)
        return 2
    try:
        run_job(sys.argv[1])
    except Exception as e:
        logger.error(f"Processing failed: {e}", exc_info=True)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
