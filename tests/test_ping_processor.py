"""
Тесты для PingProcessor.
"""

import unittest
import numpy as np
import sys
from pathlib import Path

# Добавляем корневую директорию в путь
sys.path.insert(0, str(Path(__file__).parent.parent))

from swathcore.dto import (Beam, DepthSourceMode, Ping, ProcessingConfigDTO, SensorChannel,
                           SensorOffsetGeometry)
from swathcore.sensor_series import SensorTimeSeries
from swathcore.sound_velocity import LayeredModel
from swathcore.geometry import vertical_lever
from swathcore.ping_processor import PingProcessor, PingState


def attitude_series(rows):
    ts = SensorTimeSeries(SensorChannel.ATTITUDE)
    for t, roll, pitch, heave in rows:
        ts.append(t, (roll, pitch, heave))
    ts.freeze()
    return ts


class TestNadirCalibration(unittest.TestCase):
    """Тесты калибровки по надирному лучу."""

    def setUp(self):
        """Инициализация тестов."""
        # Pitch is +5 degrees at sector transmit and 0 at ping time and at receive
        self.attitude = attitude_series([
            (99.0, 0.0, 0.0, 0.0),
            (100.0, 0.0, 0.0, 0.0),
            (100.1, 0.0, 5.0, 0.0),
            (100.3, 0.0, 0.0, 0.0),
            (101.0, 0.0, 0.0, 0.0),
        ])
        self.offsets = SensorOffsetGeometry(transducer_offset=[2.0, 0.0, 1.0])
        self.processor = PingProcessor(LayeredModel.half_space(1500.0),
                                       {SensorChannel.ATTITUDE: self.attitude}, self.offsets)
        self.ping = Ping(time=100.0, transducer_depth=5.0, beams=[
            Beam(transmit_offset=0.1, pointing_angle=0.0, travel_time=0.2, depth=100.0),
            Beam(transmit_offset=0.1, pointing_angle=40.0, travel_time=0.2,
                 acrosstrack=-96.0, depth=115.0),
        ])

    def test_heave_offset_matches_depth_residual(self):
        """Смещение равно по модулю невязке глубины надирного луча."""
        result = self.processor.process(self.ping)
        calibration = self.processor.calibration

        self.assertEqual(result.nadir_beam, 0)
        self.assertNotEqual(self.processor.heave_offset, 0.0)
        self.assertAlmostEqual(abs(self.processor.heave_offset), abs(calibration.residual))
        self.assertAlmostEqual(result.heave_offset, self.processor.heave_offset)

        # Independent closed form for the half space
        setup = calibration.setup
        lever = vertical_lever([2.0, 0.0, 1.0], [0.0, 0.0, 0.0], 0.0, 5.0)
        self.assertAlmostEqual(setup.depth_offset_use, 5.0 + lever)
        theta = np.arcsin(setup.target_distance / 150.0)
        expected = 105.0 - (5.0 + lever + 150.0 * np.cos(theta))
        self.assertAlmostEqual(self.processor.heave_offset, expected, places=3)

    def test_nadir_depth_matches_after_calibration(self):
        """После калибровки глубина надирного луча совпадает с исходной."""
        result = self.processor.process(self.ping)
        self.assertTrue(result.beams[0].valid)
        self.assertAlmostEqual(result.beams[0].depth, 100.0, places=2)
        self.assertTrue(result.beams[1].valid)

    def test_state_machine_reaches_emit(self):
        self.assertEqual(self.processor.state, PingState.INIT)
        self.processor.process(self.ping)
        self.assertEqual(self.processor.state, PingState.EMIT)
        self.assertEqual(len(self.processor.sync_attitude), 1)


class TestPingProcessor(unittest.TestCase):
    """Тесты обработки пингов."""

    def setUp(self):
        """Инициализация тестов."""
        self.model = LayeredModel.half_space(1500.0)

    def test_zero_valid_beams_still_emitted(self):
        """Пинг без достоверных лучей не теряется."""
        processor = PingProcessor(self.model)
        ping = Ping(time=10.0, beams=[Beam(pointing_angle=0.0, travel_time=0.0),
                                      Beam(pointing_angle=20.0, travel_time=-1.0)])
        result = processor.process(ping)
        self.assertEqual(len(result.beams), 2)
        self.assertTrue(all(not b.valid for b in result.beams))
        self.assertIsNone(result.nadir_beam)
        self.assertEqual(result.heave_offset, 0.0)
        self.assertEqual(len(result.warnings), 1)
        self.assertEqual(processor.state, PingState.EMIT)

    def test_ping_values_kept_without_sensors(self):
        processor = PingProcessor(self.model)
        ping = Ping(time=10.0, longitude=12.5, latitude=-33.0, heading=45.0, roll=1.0, pitch=-2.0,
                    transducer_depth=3.0)
        result = processor.process(ping)
        self.assertEqual(result.heading, 45.0)
        self.assertEqual(result.roll, 1.0)
        self.assertEqual(result.pitch, -2.0)
        self.assertEqual(result.longitude, 12.5)
        self.assertEqual(result.transducer_depth, 3.0)

    def test_sensor_values_replace_ping_snapshot(self):
        heading = SensorTimeSeries(SensorChannel.HEADING)
        heading.append(0.0, 90.0)
        heading.append(20.0, 110.0)
        position = SensorTimeSeries(SensorChannel.POSITION)
        position.append(0.0, (10.0, 50.0))
        position.append(20.0, (10.2, 50.2))
        offsets = SensorOffsetGeometry(heading_bias=1.0)
        processor = PingProcessor(self.model, {SensorChannel.HEADING: heading,
                                               SensorChannel.POSITION: position}, offsets)
        result = processor.process(Ping(time=10.0, heading=0.0))
        self.assertAlmostEqual(result.heading, 101.0)
        self.assertAlmostEqual(result.longitude, 10.1)
        self.assertAlmostEqual(result.latitude, 50.1)

    def test_out_of_order_pings_do_not_raise(self):
        """Пинги не по порядку обрабатываются без исключений."""
        attitude = attitude_series([(t, 0.5 * np.sin(t), 0.2 * np.cos(t), 0.1) for t in range(0, 30)])
        processor = PingProcessor(self.model, {SensorChannel.ATTITUDE: attitude})
        for time in (20.0, 5.0, 12.0):
            result = processor.process(Ping(time=time, transducer_depth=4.0, beams=[
                Beam(pointing_angle=0.0, travel_time=0.1, depth=75.0),
                Beam(pointing_angle=45.0, travel_time=0.1, acrosstrack=-53.0, depth=53.0),
            ]))
            self.assertEqual(len(result.beams), 2)
            self.assertTrue(abs(result.roll) <= 0.5)

    def test_sensor_gaps_counted(self):
        """Каждый запрос вне интервала данных считается один раз."""
        attitude = attitude_series([(0.0, 0.0, 0.0, 0.0), (1.0, 0.0, 0.0, 0.0)])
        processor = PingProcessor(self.model, {SensorChannel.ATTITUDE: attitude})
        result = processor.process(Ping(time=50.0, beams=[Beam(pointing_angle=0.0, travel_time=0.1,
                                                               depth=75.0)]))
        # Ping time, then the beam's transmit and receive times
        self.assertEqual(result.sensor_gaps, 3)

    def test_ping_attitude_used_without_attitude_series(self):
        """Без ряда ориентации используются крен и дифферент пинга."""
        offsets = SensorOffsetGeometry(transducer_offset=[0.0, 3.0, 2.0])
        processor = PingProcessor(self.model, {}, offsets)
        beam = Beam(pointing_angle=0.0, travel_time=0.2, depth=140.0)
        ping = Ping(time=10.0, roll=10.0, pitch=1.5, heave=0.2, transducer_depth=5.0, beams=[beam])

        sync = processor.synchronise(ping)
        motion = processor.corrector.sample_motion(sync, beam)
        self.assertEqual((motion.transmit_roll, motion.transmit_pitch, motion.transmit_heave),
                         (10.0, 1.5, 0.2))
        self.assertEqual(motion.receive_roll, 10.0)
        self.assertEqual(motion.differential_heave, 0.0)

        setup = processor.corrector.prepare(sync, beam)
        self.assertAlmostEqual(setup.depth_offset_use, 5.0)
        expected = np.degrees(np.arccos(np.cos(np.radians(1.5)) * np.cos(np.radians(10.0))))
        self.assertAlmostEqual(setup.theta, expected, places=6)

    def test_sensor_depth_source(self):
        """Глубина датчика заменяет заглубление антенны."""
        depth = SensorTimeSeries(SensorChannel.SENSOR_DEPTH)
        depth.append(0.0, 200.0)
        depth.append(20.0, 200.0)
        config = ProcessingConfigDTO(depth_source=DepthSourceMode.SENSOR_DEPTH)
        offsets = SensorOffsetGeometry(sensor_depth_static=0.5)
        processor = PingProcessor(self.model, {SensorChannel.SENSOR_DEPTH: depth}, offsets, config)
        result = processor.process(Ping(time=10.0, transducer_depth=3.0))
        self.assertAlmostEqual(result.transducer_depth, 200.5)


if __name__ == '__main__':
    unittest.main()
