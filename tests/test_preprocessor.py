"""
Tests for the two-pass SwathPreprocessor and ancillary output.
"""

import tempfile
import unittest
import numpy as np

# Add parent directory to path for imports
import sys
from pathlib import Path
_root = Path(__file__).parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from swathcore.dto import Beam, Ping, ProcessingConfigDTO, SensorChannel, SensorSample
from swathcore.preprocessor import SwathPreprocessor
from swathdata.ancillary_writer import AncillaryWriter


def make_records():
    records = []
    # Heading and attitude at 10 Hz, far outside the ping span at both ends
    for t in np.arange(-2000, 2200) / 10.0:
        t = float(t)
        records.append(SensorSample(channel=SensorChannel.HEADING, time=t, values=[45.0]))
        records.append(SensorSample(channel=SensorChannel.ATTITUDE, time=t,
                                    values=[1.0, 2.0, 0.0]))
    for t in (0.0, 1.0, 2.0):
        beams = [Beam(pointing_angle=0.0, travel_time=0.1, depth=75.0),
                 Beam(pointing_angle=30.0, travel_time=0.1, acrosstrack=-37.5, depth=65.0),
                 Beam(pointing_angle=60.0, travel_time=0.0)]
        records.append(Ping(time=t, heading=45.0, transducer_depth=2.0, beams=beams))
    return records


class TestSwathPreprocessor(unittest.TestCase):
    """Two-pass processing."""

    def setUp(self):
        self.records = make_records()

    def test_run_emits_every_ping(self):
        preprocessor = SwathPreprocessor()
        pings = list(preprocessor.run(lambda: iter(self.records)))

        self.assertEqual(len(pings), 3)
        self.assertEqual([p.time for p in pings], [0.0, 1.0, 2.0])
        summary = preprocessor.summary
        self.assertEqual(summary.pings, 3)
        self.assertEqual(summary.beams_valid, 6)
        self.assertEqual(summary.beams_invalid, 3)
        self.assertEqual(summary.samples['heading'], 4200)
        self.assertEqual(summary.samples['position'], 0)
        self.assertEqual(summary.start_time, 0.0)
        self.assertEqual(summary.end_time, 2.0)

    def test_attitude_taken_from_sensor_series(self):
        preprocessor = SwathPreprocessor()
        pings = list(preprocessor.run(lambda: iter(self.records)))
        self.assertAlmostEqual(pings[0].roll, 1.0)
        self.assertAlmostEqual(pings[0].pitch, 2.0)
        self.assertEqual(pings[0].sensor_gaps, 0)

    def test_second_pass_requires_freeze(self):
        preprocessor = SwathPreprocessor()
        preprocessor.first_pass(self.records)
        with self.assertRaises(ValueError):
            list(preprocessor.second_pass(self.records))

    def test_constant_latency_applied(self):
        config = ProcessingConfigDTO(latency_constant=0.5, latency_channels=[SensorChannel.HEADING])
        preprocessor = SwathPreprocessor(config)
        preprocessor.first_pass(self.records)
        preprocessor.freeze()
        self.assertAlmostEqual(preprocessor.series[SensorChannel.HEADING].times[0], -200.5)
        self.assertAlmostEqual(preprocessor.series[SensorChannel.ATTITUDE].times[0], -200.0)

    def test_unknown_record_rejected(self):
        preprocessor = SwathPreprocessor()
        with self.assertRaises(ValueError):
            preprocessor.first_pass([object()])

    def test_ancillary_window(self):
        preprocessor = SwathPreprocessor()
        list(preprocessor.run(lambda: iter(self.records)))
        self.assertEqual(preprocessor.ancillary_window(), (-120.0, 122.0))

        heading = preprocessor.asynchronous_heading()
        self.assertGreaterEqual(heading[:, 0].min(), -120.0)
        self.assertLessEqual(heading[:, 0].max(), 122.0)
        self.assertEqual(heading.shape[1], 2)
        self.assertEqual(preprocessor.asynchronous_attitude().shape[1], 3)
        np.testing.assert_allclose(preprocessor.synchronous_attitude(),
                                   [[0.0, 1.0, 2.0], [1.0, 1.0, 2.0], [2.0, 1.0, 2.0]])


class TestAncillaryWriter(unittest.TestCase):
    """Ancillary file output."""

    def test_files_written(self):
        preprocessor = SwathPreprocessor()
        list(preprocessor.run(lambda: iter(make_records())))

        with tempfile.TemporaryDirectory() as tmp:
            root = Path(tmp) / 'survey'
            written = AncillaryWriter(root).write(preprocessor)
            self.assertEqual(set(written), {'.sta', '.ath', '.ata'})

            lines = (Path(tmp) / 'survey.sta').read_text().splitlines()
            self.assertEqual(lines[0], '0.000000\t1.000\t2.000')
            self.assertEqual(len(lines), 3)

            heading = (Path(tmp) / 'survey.ath').read_text().splitlines()
            self.assertEqual(heading[0].split('\t')[1], '45.000')
            times = [float(line.split('\t')[0]) for line in heading]
            self.assertGreaterEqual(min(times), -120.0)
            self.assertLessEqual(max(times), 122.0)

    def test_empty_tables_skipped(self):
        preprocessor = SwathPreprocessor()
        list(preprocessor.run(lambda: iter([Ping(time=5.0)])))
        with tempfile.TemporaryDirectory() as tmp:
            written = AncillaryWriter(Path(tmp) / 'survey').write(preprocessor)
            self.assertEqual(set(written), {'.sta'})


if __name__ == '__main__':
    unittest.main()
