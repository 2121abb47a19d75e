import unittest

import numpy as np

from analysis.gesture_recognizer import GestureKind
from analysis.posture_classifier import ClinicalAngleKind, PostureShape
from analysis.statistics_tracker import StatisticsTracker
from core.joints import Joint, JointFrameInput
from core.mirror import MirrorMode
from core.skeleton import Skeleton
from tests.pose_fixtures import (
    arm_positions, base_positions, frame_input, push_end_pose, push_start_pose, v_pose
)


def mirror_scenario_positions(hand_offset=0.0):
    """torso 원점, 어깨 (±100, 0, 0)"""
    positions = base_positions()
    positions[Joint.TORSO] = np.array([0.0, 0.0, 0.0])
    positions[Joint.LEFT_SHOULDER] = np.array([-100.0, 0.0, 0.0])
    positions[Joint.RIGHT_SHOULDER] = np.array([100.0, 0.0, 0.0])
    positions[Joint.LEFT_ELBOW] = np.array([-250.0, -50.0, 30.0])
    positions[Joint.LEFT_HAND] = np.array([-300.0 - hand_offset, -200.0, -80.0])
    positions[Joint.RIGHT_ELBOW] = np.array([180.0, -260.0, 10.0])
    positions[Joint.RIGHT_HAND] = np.array([190.0, -480.0, 20.0])
    return positions


class TestMirrorScenario(unittest.TestCase):

    def test_left_to_right_reproduces_mirror_image(self):
        skeleton = Skeleton(mirror_mode=MirrorMode.LEFT_TO_RIGHT)
        skeleton.update(frame_input(mirror_scenario_positions()))

        np.testing.assert_allclose(skeleton.local_frame.x_axis, [1, 0, 0], atol=1e-12)
        np.testing.assert_allclose(skeleton.local_frame.origin, [0, 0, 0])
        np.testing.assert_allclose(skeleton.mirror_plane_n0(), [1, 0, 0], atol=1e-12)
        self.assertAlmostEqual(skeleton.mirror_plane_d(), 0.0)

        np.testing.assert_allclose(skeleton.joint(Joint.RIGHT_ELBOW), [250.0, -50.0, 30.0], atol=1e-9)
        np.testing.assert_allclose(skeleton.joint(Joint.RIGHT_HAND), [300.0, -200.0, -80.0], atol=1e-9)
        self.assertTrue(skeleton.state.mirrored)

    def test_unmirrored_copy_keeps_measurement(self):
        skeleton = Skeleton(mirror_mode=MirrorMode.LEFT_TO_RIGHT)
        skeleton.update(frame_input(mirror_scenario_positions()))
        np.testing.assert_allclose(skeleton.joint_unmirrored(Joint.RIGHT_HAND), [190.0, -480.0, 20.0])
        np.testing.assert_allclose(skeleton.joint(Joint.LEFT_HAND), [-300.0, -200.0, -80.0])

    def test_right_to_left(self):
        skeleton = Skeleton(mirror_mode=MirrorMode.RIGHT_TO_LEFT)
        skeleton.update(frame_input(mirror_scenario_positions()))
        np.testing.assert_allclose(skeleton.joint(Joint.LEFT_HAND), [-190.0, -480.0, 20.0], atol=1e-9)

    def test_legs_are_never_mirrored(self):
        skeleton = Skeleton(mirror_mode=MirrorMode.LEFT_TO_RIGHT)
        positions = mirror_scenario_positions()
        positions[Joint.RIGHT_KNEE] = np.array([120.0, -640.0, -40.0])
        skeleton.update(frame_input(positions))
        np.testing.assert_allclose(skeleton.joint(Joint.RIGHT_KNEE), [120.0, -640.0, -40.0])

    def test_mirrored_delta_follows_live_position(self):
        skeleton = Skeleton(mirror_mode=MirrorMode.LEFT_TO_RIGHT)
        skeleton.update(frame_input(mirror_scenario_positions(), frame_index=0))
        self.assertEqual(skeleton.joint_delta(Joint.RIGHT_HAND), 0.0)

        skeleton.update(frame_input(mirror_scenario_positions(hand_offset=10.0), frame_index=1))
        self.assertAlmostEqual(skeleton.joint_delta(Joint.RIGHT_HAND), 10.0)
        self.assertAlmostEqual(skeleton.joint_delta_unmirrored(Joint.RIGHT_HAND), 0.0)

    def test_mirror_off(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(mirror_scenario_positions()))
        self.assertFalse(skeleton.state.mirrored)
        np.testing.assert_allclose(skeleton.joint(Joint.RIGHT_HAND), [190.0, -480.0, 20.0])

    def test_orientations_are_mirrored_from_left_side(self):
        angle = np.radians(30)
        left = np.eye(4)
        left[:3, :3] = [[np.cos(angle), -np.sin(angle), 0.0],
                        [np.sin(angle), np.cos(angle), 0.0],
                        [0.0, 0.0, 1.0]]
        left[:3, 3] = [5.0, 6.0, 7.0]
        right = np.eye(4)
        right[1:3, 1:3] = [[np.cos(angle), -np.sin(angle)], [np.sin(angle), np.cos(angle)]]

        arm_pairs = ((Joint.LEFT_SHOULDER, Joint.RIGHT_SHOULDER),
                     (Joint.LEFT_ELBOW, Joint.RIGHT_ELBOW),
                     (Joint.LEFT_HAND, Joint.RIGHT_HAND))
        orientations = {}
        orientation_confidences = {}
        for left_joint, right_joint in arm_pairs:
            orientations[left_joint] = left
            orientations[right_joint] = right
            orientation_confidences[left_joint] = 0.8
            orientation_confidences[right_joint] = 0.3
        positions = mirror_scenario_positions()
        skeleton = Skeleton(mirror_mode=MirrorMode.LEFT_TO_RIGHT)
        skeleton.update(JointFrameInput(
            frame_index=0,
            frame_rate=30.0,
            positions=positions,
            confidences={joint: 1.0 for joint in positions},
            orientations=orientations,
            orientation_confidences=orientation_confidences
        ))

        # sagittal plane 은 x = 0: 회전 열의 x 성분 반사 후 X 열 부호 복원
        expected = left.copy()
        expected[0, :3] *= -1
        expected[:3, 0] *= -1
        for left_joint, right_joint in arm_pairs:
            np.testing.assert_allclose(skeleton.joint_orientation(right_joint), expected, atol=1e-12)
            self.assertEqual(skeleton.joint_orientation_confidence(right_joint), 0.8)
            np.testing.assert_allclose(skeleton.joint_orientation_unmirrored(right_joint), right)
            self.assertEqual(skeleton.joint_orientation_confidence_unmirrored(right_joint), 0.3)
            np.testing.assert_allclose(skeleton.joint_orientation(left_joint), left)
        self.assertAlmostEqual(np.linalg.det(skeleton.joint_orientation(Joint.RIGHT_HAND)[:3, :3]), 1.0)


class TestSkeletonPipeline(unittest.TestCase):

    def test_posture_and_local_joints(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(v_pose()))
        self.assertEqual(skeleton.posture, PostureShape.V)
        np.testing.assert_allclose(skeleton.joint_local(Joint.LEFT_SHOULDER), [-150.0, 200.0, 0.0], atol=1e-9)

    def test_gesture_through_skeleton(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(push_start_pose(), frame_index=0))
        skeleton.update(frame_input(push_end_pose(), frame_index=29))
        self.assertEqual(skeleton.last_gesture(0), GestureKind.PUSH)

        late = Skeleton()
        late.update(frame_input(push_start_pose(), frame_index=0))
        late.update(frame_input(push_end_pose(), frame_index=31))
        self.assertEqual(late.last_gesture(5), GestureKind.NONE)

    def test_evaluation_toggles(self):
        skeleton = Skeleton(evaluate_posture_and_gesture=False, evaluate_statistics=False)
        skeleton.update(frame_input(v_pose(), frame_index=0))
        skeleton.update(frame_input(v_pose(), frame_index=1))
        self.assertEqual(skeleton.posture, PostureShape.NO_POSE)
        self.assertEqual(skeleton.statistics.frame_count, 0)
        self.assertEqual(skeleton.last_gesture(10), GestureKind.NONE)

    def test_upper_body_only_tracking(self):
        skeleton = Skeleton(full_body_tracking=False)
        skeleton.update(frame_input(v_pose()))
        np.testing.assert_allclose(skeleton.joint(Joint.LEFT_KNEE), [0.0, 0.0, 0.0])
        self.assertEqual(skeleton.joint_confidence(Joint.LEFT_KNEE), 0.0)
        self.assertEqual(skeleton.joint_confidence(Joint.LEFT_HAND), 1.0)

    def test_clinical_angle_accessor(self):
        positions = arm_positions((-1, 0, 0), (-1, 0, 0), (0, -1, 0), (0, -1, 0))
        skeleton = Skeleton()
        skeleton.update(frame_input(positions))
        self.assertAlmostEqual(skeleton.clinical_angle(ClinicalAngleKind.ABDUCTION,
                                                       Joint.LEFT_ELBOW, Joint.LEFT_SHOULDER), 90.0)
        self.assertEqual(skeleton.clinical_angle(ClinicalAngleKind.ABDUCTION, Joint.HEAD, Joint.NECK), 0.0)

    def test_angle_accessors(self):
        positions = arm_positions((-1, 0, 0), (0, 1, 0), (0, -1, 0), (0, -1, 0))
        positions = {joint: p + np.array([0.0, 0.0, 2000.0]) for joint, p in positions.items()}
        skeleton = Skeleton()
        skeleton.update(frame_input(positions))

        self.assertAlmostEqual(skeleton.angle_between(Joint.LEFT_HAND, Joint.LEFT_ELBOW,
                                                      Joint.LEFT_ELBOW, Joint.LEFT_SHOULDER), 90.0)
        self.assertAlmostEqual(skeleton.angle_to_local_axis(Joint.LEFT_ELBOW, Joint.LEFT_SHOULDER, 'x'), 180.0)
        self.assertAlmostEqual(skeleton.angle_to_global_axis(Joint.LEFT_HAND, Joint.LEFT_ELBOW, 'y'), 0.0)
        self.assertEqual(skeleton.angle_to_local_axis(Joint.LEFT_ELBOW, Joint.LEFT_SHOULDER, 'w'), 0.0)
        self.assertAlmostEqual(skeleton.distance_to_sensor(), 2000.0)
        for angle in skeleton.orientation_angles():
            self.assertAlmostEqual(angle, 0.0, places=4)
        self.assertAlmostEqual(skeleton.arm_vectors.left_elbow_angle, 90.0)


class TestSkeletonErrors(unittest.TestCase):

    def test_degenerate_frame_keeps_previous_state(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(v_pose(), frame_index=0))
        good_frame = skeleton.local_frame
        good_local = skeleton.joint_local(Joint.LEFT_HAND)

        broken = v_pose()
        broken[Joint.RIGHT_SHOULDER] = broken[Joint.LEFT_SHOULDER].copy()
        broken[Joint.LEFT_HAND] = broken[Joint.LEFT_HAND] + [0.0, 0.0, 50.0]
        with self.assertLogs('core.skeleton', level='WARNING'):
            state = skeleton.update(frame_input(broken, frame_index=1))

        self.assertFalse(state.geometry_valid)
        self.assertIs(skeleton.local_frame, good_frame)
        self.assertEqual(skeleton.posture, PostureShape.V)
        np.testing.assert_allclose(skeleton.joint_local(Joint.LEFT_HAND), good_local)
        np.testing.assert_allclose(skeleton.joint(Joint.LEFT_HAND), broken[Joint.LEFT_HAND])
        for joint in Joint:
            self.assertTrue(np.all(np.isfinite(skeleton.joint_local(joint))))
        self.assertEqual(skeleton.statistics.frame_count, 2)

        state = skeleton.update(frame_input(v_pose(), frame_index=2))
        self.assertTrue(state.geometry_valid)
        self.assertEqual(skeleton.posture, PostureShape.V)

    def test_degenerate_first_frame(self):
        positions = v_pose()
        positions[Joint.RIGHT_SHOULDER] = positions[Joint.LEFT_SHOULDER].copy()
        skeleton = Skeleton(mirror_mode=MirrorMode.LEFT_TO_RIGHT)
        with self.assertLogs('core.skeleton', level='WARNING'):
            skeleton.update(frame_input(positions))
        self.assertIsNone(skeleton.local_frame)
        self.assertIsNone(skeleton.body_planes)
        self.assertFalse(skeleton.state.mirrored)
        np.testing.assert_allclose(skeleton.mirror_plane_r(), [0, 0, 0])
        self.assertEqual(skeleton.orientation_angles(), (0.0, 0.0, 0.0))

    def test_out_of_range_identifiers(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(v_pose()))
        np.testing.assert_array_equal(skeleton.joint(99), np.zeros(3))
        np.testing.assert_array_equal(skeleton.joint('NOT_A_JOINT'), np.zeros(3))
        np.testing.assert_array_equal(skeleton.joint_local(-1), np.zeros(3))
        np.testing.assert_array_equal(skeleton.joint_orientation(15), np.eye(4))
        self.assertEqual(skeleton.joint_confidence(None), 0.0)
        self.assertEqual(skeleton.joint_delta_unmirrored(42), 0.0)
        self.assertEqual(skeleton.last_gesture(-3), GestureKind.NONE)

    def test_joint_names_and_ints_are_accepted(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(v_pose()))
        np.testing.assert_allclose(skeleton.joint('left_hand'), skeleton.joint(Joint.LEFT_HAND))
        np.testing.assert_allclose(skeleton.joint(int(Joint.LEFT_HAND)), skeleton.joint(Joint.LEFT_HAND))

    def test_accessors_return_copies(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(v_pose()))
        position = skeleton.joint(Joint.LEFT_HAND)
        position[0] = 1e9
        self.assertNotEqual(skeleton.joint(Joint.LEFT_HAND)[0], 1e9)

    def test_update_is_not_reentrant(self):
        skeleton = Skeleton()

        class ReentrantTracker(StatisticsTracker):
            def update(self, store, frame_index, frame_rate):
                skeleton.update(frame_input(v_pose(), frame_index=frame_index + 1))

        skeleton.statistics = ReentrantTracker()
        with self.assertRaises(RuntimeError):
            skeleton.update(frame_input(v_pose(), frame_index=0))
        self.assertIsNone(skeleton.state.frame_index)

        skeleton.statistics = StatisticsTracker()
        skeleton.update(frame_input(v_pose(), frame_index=1))
        self.assertEqual(skeleton.state.frame_index, 1)

    def test_non_finite_sample_is_treated_as_missing(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(v_pose(), frame_index=0))
        kept = skeleton.joint(Joint.LEFT_HAND)

        broken = v_pose()
        broken[Joint.LEFT_HAND] = np.array([np.nan, 0.0, 0.0])
        skeleton.update(frame_input(broken, frame_index=1))
        np.testing.assert_allclose(skeleton.joint(Joint.LEFT_HAND), kept)
        self.assertEqual(skeleton.joint_confidence(Joint.LEFT_HAND), 0.0)
        self.assertEqual(skeleton.joint_delta(Joint.LEFT_HAND), 0.0)
        self.assertEqual(skeleton.posture, PostureShape.V)

        moved = v_pose()
        moved[Joint.LEFT_HAND] = moved[Joint.LEFT_HAND] + [10.0, 0.0, 0.0]
        for frame_index in range(2, 6):
            skeleton.update(frame_input(moved, frame_index=frame_index))

        hand = skeleton.statistics.limb(Joint.LEFT_HAND)
        self.assertTrue(np.isfinite(hand.distance))
        self.assertAlmostEqual(hand.distance, 10.0)
        for position in hand.history:
            self.assertTrue(np.all(np.isfinite(position)))

    def test_failed_update_leaves_previous_frame_in_place(self):
        skeleton = Skeleton()
        skeleton.update(frame_input(push_start_pose(), frame_index=0))

        class FailingTracker(StatisticsTracker):
            def update(self, store, frame_index, frame_rate):
                raise ValueError("statistics sink unavailable")

        moved = v_pose()
        moved[Joint.LEFT_HAND] = moved[Joint.LEFT_HAND] + [100.0, 0.0, 0.0]
        skeleton.statistics = FailingTracker()
        with self.assertRaises(ValueError):
            skeleton.update(frame_input(moved, frame_index=1))

        self.assertEqual(skeleton.state.frame_index, 0)
        self.assertEqual(skeleton.gesture_recognizer.window_start, 0)
        np.testing.assert_allclose(skeleton.store.position(Joint.LEFT_HAND),
                                   push_start_pose()[Joint.LEFT_HAND])

        skeleton.statistics = StatisticsTracker()
        skeleton.update(frame_input(push_start_pose(), frame_index=2))
        self.assertEqual(skeleton.joint_delta(Joint.LEFT_HAND), 0.0)
        skeleton.update(frame_input(push_end_pose(), frame_index=10))
        self.assertEqual(skeleton.last_gesture(0), GestureKind.PUSH)

    def test_tolerance_setters(self):
        skeleton = Skeleton()
        skeleton.set_posture_tolerance(3.0)
        skeleton.set_gesture_tolerance(-1.0)
        self.assertEqual(skeleton.posture_classifier.tolerance, 0.3)
        self.assertEqual(skeleton.gesture_recognizer.tolerance, 0.5)


if __name__ == '__main__':
    unittest.main()
