"""
DataProvider - провайдер данных для препроцессора: профили, смещения, датчики, пинги.
"""

import json
from pathlib import Path
from typing import Dict, Iterator, Optional, Union
import logging

import numpy as np

from swathcore.dto import (CHANNEL_FIELDS, CorrectedPing, JobDTO, Ping, ProcessingConfigDTO,
                           SensorChannel, SensorOffsetGeometry, SensorSample)
from swathcore.sound_velocity import SoundVelocityProfile
from swathcore.time_latency import TimeLatencyModel


class DataProvider:
    """
    Провайдер данных съёмки.

    Предоставляет доступ к:
    - Профилям скорости звука (глубина, скорость)
    - Таблицам задержек (время, задержка)
    - Геометрии установки датчиков (JSON)
    - Записям асинхронных датчиков (текстовые столбцы)
    - Пингам (JSON lines)
    """

    def __init__(self, data_dir: Optional[Union[str, Path]] = None):
        """
        Initialize data provider.

        Args:
            data_dir: Directory relative paths are resolved against (default: current directory)
        """
        self.data_dir = Path(data_dir) if data_dir is not None else Path.cwd()
        self.logger = logging.getLogger(__name__)

        # Cache for loaded data
        self._profiles = {}
        self._offsets = {}

    def _resolve(self, name: Union[str, Path]) -> Path:
        path = Path(name)
        if not path.is_absolute():
            path = self.data_dir / path
        if not path.exists():
            raise ValueError(f"File {path} not found")
        return path

    def _load_json(self, file_path: Path) -> Dict:
        """Loads JSON file."""
        try:
            with open(file_path, 'r', encoding='utf-8') as f:
                return json.load(f)
        except Exception as e:
            self.logger.error(f"Error loading {file_path}: {e}")
            raise

    def _load_table(self, file_path: Path, ncols: int) -> np.ndarray:
        """Loads whitespace separated numeric columns, '#' starts a comment."""
        try:
            table = np.loadtxt(file_path, comments='#', ndmin=2)
        except Exception as e:
            self.logger.error(f"Error loading {file_path}: {e}")
            raise
        if table.size == 0:
            return np.zeros((0, ncols))
        if table.shape[1] < ncols:
            raise ValueError(f"{file_path} needs {ncols} columns, found {table.shape[1]}")
        return table[:, :ncols]

    def load_sound_velocity_profile(self, name: Union[str, Path]) -> SoundVelocityProfile:
        """
        Loads a two-column depth/velocity table.

        Args:
            name: File name

        Returns:
            SoundVelocityProfile
        """
        path = self._resolve(name)
        if path in self._profiles:
            return self._profiles[path]

        table = self._load_table(path, 2)
        profile = SoundVelocityProfile(table[:, 0], table[:, 1])
        self._profiles[path] = profile
        self.logger.info(f"Loaded {profile} from {path}")
        return profile

    def load_latency_model(self, name: Union[str, Path]) -> TimeLatencyModel:
        """
        Loads a two-column time/latency table.

        A single row gives a constant latency.
        """
        path = self._resolve(name)
        table = self._load_table(path, 2)
        if table.shape[0] == 1:
            return TimeLatencyModel.from_constant(table[0, 1])
        return TimeLatencyModel.from_table(table[:, 0], table[:, 1])

    def load_sensor_offsets(self, name: Union[str, Path]) -> SensorOffsetGeometry:
        path = self._resolve(name)
        if path not in self._offsets:
            self._offsets[path] = SensorOffsetGeometry(**self._load_json(path))
        return self._offsets[path]

    def load_config(self, name: Union[str, Path]) -> ProcessingConfigDTO:
        return ProcessingConfigDTO(**self._load_json(self._resolve(name)))

    def load_job(self, name: Union[str, Path]) -> JobDTO:
        """
        Loads a job description.

        Relative file names inside the job are resolved against the job's directory.
        """
        path = self._resolve(name)
        job = JobDTO(**self._load_json(path))
        self.data_dir = path.parent
        return job

    def iter_sensor_samples(self, name: Union[str, Path], channel: SensorChannel) -> Iterator[SensorSample]:
        """
        Reads a columnar sensor file: time followed by the channel's value components.

        Args:
            name: File name
            channel: Channel the file belongs to

        Yields:
            SensorSample in file order
        """
        channel = SensorChannel(channel)
        ncomp = len(CHANNEL_FIELDS[channel])
        table = self._load_table(self._resolve(name), 1 + ncomp)
        for row in table:
            yield SensorSample(channel=channel, time=float(row[0]), values=row[1:].tolist())

    def iter_pings(self, name: Union[str, Path]) -> Iterator[Ping]:
        """Reads pings stored one JSON object per line."""
        path = self._resolve(name)
        with open(path, 'r', encoding='utf-8') as f:
            for lineno, line in enumerate(f, 1):
                line = line.strip()
                if not line or line.startswith('#'):
                    continue
                try:
                    yield Ping(**json.loads(line))
                except Exception as e:
                    self.logger.error(f"{path}:{lineno}: invalid ping record: {e}")
                    raise

    def iter_records(self, job: JobDTO) -> Iterator[Union[SensorSample, Ping]]:
        """All sensor samples of a job followed by its pings."""
        for channel, name in job.sensor_files.items():
            yield from self.iter_sensor_samples(name, channel)
        yield from self.iter_pings(job.pings_file)

    def write_pings(self, path: Union[str, Path], pings: Iterator[CorrectedPing]) -> int:
        """
        Writes corrected pings as JSON lines.

        Returns:
            Number of pings written
        """
        count = 0
        with open(path, 'w', encoding='utf-8') as f:
            for ping in pings:
                f.write(ping.model_dump_json() + '\n')
                count += 1
        return count

