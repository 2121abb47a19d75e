import os
import tempfile
import unittest
from dataclasses import replace

import numpy as np

from analysis.statistics_log import StatisticsLog, read_frame_log
from analysis.statistics_tracker import FRAME_COLUMNS, SUMMARY_COLUMNS, StatisticsTracker
from core.coordinate_system import FrameBuilder
from core.joints import Joint, JointStore
from tests.pose_fixtures import arm_positions, frame_input


def hanging_arms():
    return arm_positions((0, -1, 0), (0, -1, 0), (0, -1, 0), (0, -1, 0))


class StoreDriver:
    """JointStore + local 좌표 갱신 (Skeleton 없이 tracker 만 검사)"""

    def __init__(self):
        self.store = JointStore()
        self.builder = FrameBuilder()

    def feed(self, positions, frame_index, frame_rate=30.0):
        self.store.refresh(frame_input(positions, frame_index, frame_rate))
        frame = self.builder.build(positions[Joint.TORSO], positions[Joint.LEFT_SHOULDER],
                                   positions[Joint.RIGHT_SHOULDER])
        local = {joint: frame.to_local(sample.position) for joint, sample in self.store.true_unmirrored.items()}
        self.store.set_local(local, local)
        return self.store


class TestStatisticsTracker(unittest.TestCase):

    def run_moving_hand(self, steps, tracker=None, step=(10.0, 0.0, 0.0)):
        driver = StoreDriver()
        tracker = tracker or StatisticsTracker()
        for i, offset in enumerate(steps):
            positions = hanging_arms()
            positions[Joint.LEFT_HAND] = positions[Joint.LEFT_HAND] + np.asarray(step) * offset
            tracker.update(driver.feed(positions, i), i, 30.0)
        return tracker

    def test_distance_is_sum_of_deltas_and_monotonic(self):
        driver = StoreDriver()
        tracker = StatisticsTracker()
        rng = np.random.RandomState(5)
        delta_sum = 0.0
        last_distance = 0.0
        for i in range(40):
            positions = hanging_arms()
            positions[Joint.LEFT_HAND] = positions[Joint.LEFT_HAND] + rng.uniform(-20, 20, 3)
            store = driver.feed(positions, i)
            delta_sum += store.sample(Joint.LEFT_HAND, unmirrored=True).delta
            tracker.update(store, i, 30.0)

            distance = tracker.limb(Joint.LEFT_HAND).distance
            self.assertGreaterEqual(distance, last_distance)
            last_distance = distance
        self.assertAlmostEqual(tracker.limb(Joint.LEFT_HAND).distance, delta_sum, places=9)

    def test_velocity_and_elapsed_time(self):
        tracker = self.run_moving_hand(range(5))
        hand = tracker.limb(Joint.LEFT_HAND)
        self.assertAlmostEqual(hand.distance, 40.0)
        self.assertAlmostEqual(hand.velocity, 300.0)
        self.assertAlmostEqual(tracker.seconds, 4 / 30.0)
        self.assertEqual(tracker.limb(Joint.RIGHT_HAND).distance, 0.0)

    def test_constant_movement_counter(self):
        tracker = self.run_moving_hand([0, 1, 2, 3, 4])
        self.assertEqual(tracker.limb(Joint.LEFT_HAND).constant_movement_counter, 4)

        tracker = self.run_moving_hand([0, 1, 2, 3, 2])
        self.assertEqual(tracker.limb(Joint.LEFT_HAND).constant_movement_counter, 0)

    def test_zero_frame_rate_adds_no_time(self):
        driver = StoreDriver()
        tracker = StatisticsTracker()
        tracker.update(driver.feed(hanging_arms(), 0, 0.0), 0, 0.0)
        tracker.update(driver.feed(hanging_arms(), 1, 0.0), 1, 0.0)
        self.assertEqual(tracker.seconds, 0.0)
        self.assertEqual(tracker.limb(Joint.LEFT_HAND).velocity, 0.0)

    def test_non_finite_delta_is_not_accumulated(self):
        driver = StoreDriver()
        tracker = StatisticsTracker()
        tracker.update(driver.feed(hanging_arms(), 0), 0, 30.0)

        store = driver.feed(hanging_arms(), 1)
        store.true_unmirrored[Joint.LEFT_HAND] = replace(store.true_unmirrored[Joint.LEFT_HAND], delta=float('nan'))
        tracker.update(store, 1, 30.0)

        hand = tracker.limb(Joint.LEFT_HAND)
        self.assertEqual(hand.distance, 0.0)
        self.assertEqual(hand.velocity, 0.0)

    def test_store_keeps_last_position_for_non_finite_sample(self):
        driver = StoreDriver()
        driver.feed(hanging_arms(), 0)
        kept = driver.store.position(Joint.LEFT_HAND, unmirrored=True)

        positions = hanging_arms()
        positions[Joint.LEFT_HAND] = np.array([0.0, np.inf, 0.0])
        store = driver.feed(positions, 1)
        sample = store.sample(Joint.LEFT_HAND, unmirrored=True)
        np.testing.assert_allclose(sample.position, kept)
        self.assertEqual(sample.confidence, 0.0)
        self.assertEqual(sample.delta, 0.0)

        store = driver.feed(hanging_arms(), 2)
        self.assertEqual(store.sample(Joint.LEFT_HAND, unmirrored=True).delta, 0.0)

    def test_failed_update_changes_nothing(self):
        driver = StoreDriver()
        tracker = self.run_moving_hand(range(2))
        before = tracker.snapshot()

        positions = hanging_arms()
        positions[Joint.LEFT_HAND] = positions[Joint.LEFT_HAND] + [50.0, 0.0, 0.0]
        store = driver.feed(positions, 2)
        del store.true_local[Joint.LEFT_SHOULDER]
        with self.assertRaises(KeyError):
            tracker.update(store, 2, 30.0)

        self.assertEqual(tracker.frame_count, before.frame_count)
        self.assertEqual(tracker.seconds, before.seconds)
        self.assertEqual(tracker.limb(Joint.LEFT_HAND).distance, before.limb(Joint.LEFT_HAND).distance)
        self.assertEqual(len(tracker.limb(Joint.LEFT_HAND).history), 2)

    def test_max_angles_only_increase(self):
        driver = StoreDriver()
        tracker = StatisticsTracker()
        raised = arm_positions((-1, 0, 0), (0, 1, 0), (0, -1, 0), (0, -1, 0))
        tracker.update(driver.feed(raised, 0), 0, 30.0)
        tracker.update(driver.feed(hanging_arms(), 1), 1, 30.0)

        self.assertAlmostEqual(tracker.max_angle_left_lower_arm, 90.0)
        self.assertAlmostEqual(tracker.max_angle_left_upper_arm, 90.0)
        self.assertAlmostEqual(tracker.max_angle_right_upper_arm, 0.0)
        self.assertAlmostEqual(tracker.max_clinical_angles['maxAbductionLeftUpperArm'], 90.0)
        self.assertEqual(tracker.max_clinical_angles['maxAbductionRightUpperArm'], 0.0)

    def test_history_ring_buffer(self):
        tracker = self.run_moving_hand(range(5), tracker=StatisticsTracker(history_size=3))
        history = tracker.limb(Joint.LEFT_HAND).history
        self.assertEqual(len(history), 3)

        unbounded = self.run_moving_hand(range(5))
        self.assertEqual(len(unbounded.limb(Joint.LEFT_HAND).history), 5)

    def test_invalid_history_size(self):
        with self.assertRaises(ValueError):
            StatisticsTracker(history_size=0)

    def test_snapshot_is_independent(self):
        tracker = self.run_moving_hand(range(3))
        snapshot = tracker.snapshot()
        distance = snapshot.limb(Joint.LEFT_HAND).distance

        snapshot.limb(Joint.LEFT_HAND).history[0][0] = 12345.0
        self.assertNotEqual(tracker.limb(Joint.LEFT_HAND).history[0][0], 12345.0)

        tracker.limb(Joint.LEFT_HAND).history[1][0] = -999.0
        tracker.limb(Joint.LEFT_HAND).distance += 100.0
        self.assertEqual(snapshot.limb(Joint.LEFT_HAND).distance, distance)
        self.assertNotEqual(snapshot.limb(Joint.LEFT_HAND).history[1][0], -999.0)
        self.assertEqual(len(snapshot.limb(Joint.LEFT_HAND).history), 3)

    def test_rows_use_log_columns(self):
        tracker = self.run_moving_hand(range(2))
        self.assertEqual(list(tracker.frame_row().keys()), FRAME_COLUMNS)
        self.assertEqual(list(tracker.summary_row().keys()), SUMMARY_COLUMNS)
        self.assertAlmostEqual(tracker.frame_row()['deltaLH'], 10.0)
        self.assertAlmostEqual(tracker.summary_row()['distanceLH'], 10.0)


class TestStatisticsLog(unittest.TestCase):

    def test_save_writes_frames_and_summary(self):
        driver = StoreDriver()
        tracker = StatisticsTracker()
        log = StatisticsLog()
        for i in range(4):
            positions = hanging_arms()
            positions[Joint.RIGHT_HAND] = positions[Joint.RIGHT_HAND] + [0.0, 5.0 * i, 0.0]
            tracker.update(driver.feed(positions, i), i, 30.0)
            log.record(tracker)

        with tempfile.TemporaryDirectory() as tmp:
            path = log.save(os.path.join(tmp, 'data', 'statistics_log.csv'), tracker)
            frames = read_frame_log(str(path))
            with open(path, encoding='utf-8') as f:
                content = f.read()

        self.assertEqual(len(log), 4)
        self.assertEqual(list(frames.columns), FRAME_COLUMNS)
        self.assertEqual(len(frames), 4)
        self.assertAlmostEqual(frames['deltaRH'].iloc[-1], 5.0, places=3)
        self.assertIn('\ntime,distanceLH,distanceLE,distanceRH,distanceRE,maxAngleLeftLowerArm', content)


if __name__ == '__main__':
    unittest.main()
