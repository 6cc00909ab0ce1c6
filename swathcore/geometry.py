"""
Geometry - takeoff angle transform and lever-arm rotations.

Vessel frame is (x forward, y starboard, z down). Roll is positive port up,
pitch positive bow up. Takeoff azimuth is 0 forward and positive toward port.
"""

import numpy as np
from typing import Sequence, Tuple


def wrap_azimuth(phi: float) -> float:
    """Wrap azimuth into [-180, 180] degrees."""
    if phi > 180.0:
        phi -= 360.0 * np.ceil((phi - 180.0) / 360.0)
    elif phi < -180.0:
        phi += 360.0 * np.ceil((-180.0 - phi) / 360.0)
    return float(phi)


def rollpitch_to_takeoff(alpha: float, beta: float) -> Tuple[float, float]:
    """
    Convert roll-pitch beam angles to takeoff angles.

    Args:
        alpha: Pitch-like angle of the beam, degrees (+ forward)
        beta: Roll-like angle measured from the port horizontal, degrees
            (90 = vertical)

    Returns:
        (theta, phi): angle from vertical and azimuth, degrees
    """
    a = np.radians(alpha)
    b = np.radians(beta)
    x = np.sin(a)
    y = np.cos(a) * np.cos(b)
    z = np.cos(a) * np.sin(b)

    theta = np.degrees(np.arccos(np.clip(z, -1.0, 1.0)))
    if x == 0.0 and y == 0.0:
        phi = 0.0
    else:
        phi = np.degrees(np.arctan2(y, x))
    return float(theta), float(phi)


def beam_angles(tilt: float, transmit_pitch: float, pointing: float, receive_roll: float,
                pitch_bias: float = 0.0, roll_bias: float = 0.0) -> Tuple[float, float]:
    """
    Beam alpha/beta from sector tilt, receive pointing angle and attitude.

    Returns:
        (alpha, beta), degrees
    """
    alpha = tilt - transmit_pitch + pitch_bias
    beta = 90.0 - (pointing + receive_roll - roll_bias)
    return alpha, beta


def attitude_rotation(roll: float, pitch: float) -> np.ndarray:
    """
    Rotation taking vessel-frame lever arms into the levelled frame.

    Args:
        roll: Roll, degrees (+ port up)
        pitch: Pitch, degrees (+ bow up)

    Returns:
        3x3 rotation matrix
    """
    cr, sr = np.cos(np.radians(roll)), np.sin(np.radians(roll))
    cp, sp = np.cos(np.radians(pitch)), np.sin(np.radians(pitch))
    r_roll = np.array([[1.0, 0.0, 0.0],
                       [0.0, cr, -sr],
                       [0.0, sr, cr]])
    r_pitch = np.array([[cp, 0.0, sp],
                        [0.0, 1.0, 0.0],
                        [-sp, 0.0, cp]])
    return r_pitch @ r_roll


def lever_arm_offsets(target: Sequence[float], reference: Sequence[float],
                      roll: float, pitch: float) -> np.ndarray:
    """
    Levelled offset of one mounting point relative to another.

    Args:
        target: Lever arm of the point of interest, m
        reference: Lever arm of the reference sensor, m
        roll: Roll, degrees
        pitch: Pitch, degrees

    Returns:
        (forward, starboard, down) offset, m
    """
    arm = np.asarray(target, dtype=float) - np.asarray(reference, dtype=float)
    return attitude_rotation(roll, pitch) @ arm


def vertical_lever(target: Sequence[float], reference: Sequence[float],
                   roll: float, pitch: float) -> float:
    """
    Attitude-induced vertical displacement of a mounting point, m (+ down).

    Zero for a level platform.
    """
    arm = np.asarray(target, dtype=float) - np.asarray(reference, dtype=float)
    return float((attitude_rotation(roll, pitch) @ arm)[2] - arm[2])
