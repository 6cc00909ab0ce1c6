"""
AncillaryWriter - tab separated attitude and heading side files.
"""

import logging
from pathlib import Path
from typing import Dict, Union

import numpy as np

from swathcore.preprocessor import SwathPreprocessor


class AncillaryWriter:
    """
    Writes up to three ancillary files next to the output:

    - <root>.sta: synchronous attitude (time, roll, pitch) at each ping
    - <root>.ath: asynchronous heading (time, heading)
    - <root>.ata: asynchronous attitude (time, roll, pitch)

    Asynchronous records are limited to the ping time span padded by the
    configured margin. Empty tables are not written.
    """

    SYNC_ATTITUDE_SUFFIX = '.sta'
    ASYNC_HEADING_SUFFIX = '.ath'
    ASYNC_ATTITUDE_SUFFIX = '.ata'

    def __init__(self, output_root: Union[str, Path]):
        self.output_root = Path(output_root)
        self.logger = logging.getLogger(__name__)

    def _path(self, suffix: str) -> Path:
        return self.output_root.with_name(self.output_root.name + suffix)

    def _write_table(self, path: Path, rows: np.ndarray, fmt) -> bool:
        if rows.shape[0] == 0:
            return False
        np.savetxt(path, rows, fmt=fmt, delimiter='\t')
        self.logger.info(f"Wrote {rows.shape[0]} records to {path}")
        return True

    def write(self, preprocessor: SwathPreprocessor) -> Dict[str, Path]:
        """
        Write the ancillary files of a finished run.

        Args:
            preprocessor: Preprocessor after its second pass

        Returns:
            Written paths by suffix
        """
        tables = {
            self.SYNC_ATTITUDE_SUFFIX: (preprocessor.synchronous_attitude(), ['%0.6f', '%0.3f', '%0.3f']),
            self.ASYNC_HEADING_SUFFIX: (preprocessor.asynchronous_heading(), ['%0.6f', '%0.3f']),
            self.ASYNC_ATTITUDE_SUFFIX: (preprocessor.asynchronous_attitude(), ['%0.6f', '%0.3f', '%0.3f']),
        }
        written = {}
        for suffix, (rows, fmt) in tables.items():
            path = self._path(suffix)
            if self._write_table(path, rows, fmt):
                written[suffix] = path
        return written
