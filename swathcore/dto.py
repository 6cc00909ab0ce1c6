"""
DTO (Data Transfer Objects) for data transfer between modules.
"""

from enum import Enum
from typing import Dict, List, Optional
from pydantic import BaseModel, Field, validator


class SensorChannel(str, Enum):
    """Asynchronous sensor channel tag."""
    POSITION = "position"
    HEADING = "heading"
    ATTITUDE = "attitude"
    SENSOR_DEPTH = "sensor_depth"
    ALTITUDE = "altitude"


# Value components carried by each channel, in storage order
CHANNEL_FIELDS: Dict[SensorChannel, tuple] = {
    SensorChannel.POSITION: ("longitude", "latitude"),
    SensorChannel.HEADING: ("heading",),
    SensorChannel.ATTITUDE: ("roll", "pitch", "heave"),
    SensorChannel.SENSOR_DEPTH: ("sensor_depth",),
    SensorChannel.ALTITUDE: ("altitude",),
}


class DepthSourceMode(str, Enum):
    """Source of the vertical reference used for ray tracing."""
    HEAVE = "heave"
    SENSOR_DEPTH = "sensor_depth"
    SENSOR_DEPTH_AND_HEAVE = "sensor_depth_and_heave"


class SensorSample(BaseModel):
    """Single asynchronous sensor sample."""
    channel: SensorChannel = Field(..., description="Channel tag")
    time: float = Field(..., description="Epoch time, s")
    values: List[float] = Field(..., description="Channel value components (see CHANNEL_FIELDS)")

    @validator('values')
    def validate_values(cls, v, values):
        channel = values.get('channel')
        if channel is not None and len(v) != len(CHANNEL_FIELDS[channel]):
            raise ValueError(f"Channel {channel.value} expects {len(CHANNEL_FIELDS[channel])} values, got {len(v)}")
        return v


class SensorOffsetGeometry(BaseModel):
    """
    Static platform geometry.

    Lever arms are (x forward, y starboard, z down) in metres relative to the
    vessel reference point. Mounting biases are in degrees.
    """
    transducer_offset: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], description="Transmit transducer lever arm, m")
    position_offset: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], description="Position sensor lever arm, m")
    motion_offset: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], description="Motion sensor lever arm, m")
    depth_sensor_offset: List[float] = Field(default_factory=lambda: [0.0, 0.0, 0.0], description="Depth sensor lever arm, m")
    sensor_depth_static: float = Field(default=0.0, description="Static offset added to sensor depth (+ makes sonar deeper), m")
    roll_bias: float = Field(default=0.0, ge=-180, le=180, description="Receive array roll mounting bias, degrees")
    pitch_bias: float = Field(default=0.0, ge=-180, le=180, description="Transmit array pitch mounting bias, degrees")
    heading_bias: float = Field(default=0.0, ge=-360, le=360, description="Heading mounting bias, degrees")

    @validator('transducer_offset', 'position_offset', 'motion_offset', 'depth_sensor_offset')
    def validate_lever_arm(cls, v):
        if len(v) != 3:
            raise ValueError(f"Lever arm must have 3 components (x, y, z), got {len(v)}")
        return v


class Beam(BaseModel):
    """Raw beam observation as reported by the instrument."""
    sector: int = Field(default=0, ge=0, description="Transmit sector index")
    transmit_offset: float = Field(default=0.0, description="Sector transmit delay after ping time, s")
    tilt_angle: float = Field(default=0.0, description="Sector transmit tilt angle, degrees (+ forward)")
    pointing_angle: float = Field(..., description="Receive beam pointing angle, degrees (+ to port)")
    travel_time: float = Field(..., description="Two-way travel time, s")
    detection: int = Field(default=0, ge=0, le=255, description="Detection quality byte")
    clean: int = Field(default=0, description="Instrument cleaning flag (non-zero = flagged)")
    acrosstrack: float = Field(default=0.0, description="Reported acrosstrack distance from position reference, m (+ starboard)")
    alongtrack: float = Field(default=0.0, description="Reported alongtrack distance from position reference, m (+ forward)")
    depth: float = Field(default=0.0, description="Reported depth below transducer, m")


class Ping(BaseModel):
    """Single transmission event with the instrument's synchronous snapshot."""
    time: float = Field(..., description="Ping epoch time, s")
    longitude: float = Field(default=0.0, description="Longitude, degrees")
    latitude: float = Field(default=0.0, ge=-90, le=90, description="Latitude, degrees")
    heading: float = Field(default=0.0, description="Heading, degrees clockwise from north")
    roll: float = Field(default=0.0, description="Roll, degrees (+ port up)")
    pitch: float = Field(default=0.0, description="Pitch, degrees (+ bow up)")
    heave: float = Field(default=0.0, description="Heave, m (+ up)")
    transducer_depth: float = Field(default=0.0, description="Transducer depth below surface, m")
    speed: float = Field(default=0.0, ge=0, description="Speed over ground, m/s")
    beams: List[Beam] = Field(default_factory=list, description="Beams of this ping")


class CorrectedBeam(BaseModel):
    """Recomputed beam geometry."""
    depression: float = Field(default=0.0, description="Takeoff angle from vertical, degrees")
    azimuth: float = Field(default=0.0, description="Takeoff azimuth, degrees (0 forward, + to port)")
    range: float = Field(default=0.0, description="Corrected two-way travel time, s")
    depth: float = Field(default=0.0, description="Depth below transducer, m")
    acrosstrack: float = Field(default=0.0, description="Acrosstrack distance, m (+ starboard)")
    alongtrack: float = Field(default=0.0, description="Alongtrack distance, m (+ forward)")
    heave: float = Field(default=0.0, description="Beam heave (transmit/receive average), m")
    valid: bool = Field(default=False, description="Beam carries a solved sounding")
    flagged: bool = Field(default=False, description="Sounding solved but flagged by the instrument")
    converged: bool = Field(default=True, description="Both angle solves reached the precision")
    terminated: bool = Field(default=False, description="Ray terminated at a post-critical layer")


class CorrectedPing(BaseModel):
    """Output of the ping processor."""
    time: float
    longitude: float = 0.0
    latitude: float = 0.0
    heading: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    heave: float = 0.0
    transducer_depth: float = 0.0
    heave_offset: float = Field(default=0.0, description="Per-ping vertical calibration from the nadir beam, m")
    nadir_beam: Optional[int] = Field(default=None, description="Index of the most vertical valid beam")
    beams: List[CorrectedBeam] = Field(default_factory=list)
    convergence_failures: int = 0
    ray_terminations: int = 0
    sensor_gaps: int = 0
    warnings: List[str] = Field(default_factory=list, description="Warnings")


class ProcessingConfigDTO(BaseModel):
    """Processing parameters."""
    precision: float = Field(default=0.001, gt=0, description="Angle solver distance/depth precision, m")
    max_iterations: int = Field(default=50, ge=1, description="Angle solver iteration cap")
    first_step: float = Field(default=0.01, gt=0, le=1.0, description="Angle solver first perturbation, degrees")
    depth_source: DepthSourceMode = Field(default=DepthSourceMode.HEAVE, description="Vertical reference source")
    sensor_depth_filter_window: float = Field(default=0.0, ge=0, description="Sensor depth Gaussian window, s (0 = off)")
    sensor_depth_filter_taper: Optional[float] = Field(default=None, gt=0, description="Depth above which sensor depth filtering fades out, m")
    heading_filter_window: float = Field(default=0.0, ge=0, description="Heading Gaussian window, s (0 = off)")
    attitude_filter_window: float = Field(default=0.0, ge=0, description="Attitude Gaussian window, s (0 = off)")
    latency_constant: Optional[float] = Field(default=None, description="Constant time latency applied to asynchronous data, s")
    latency_channels: List[SensorChannel] = Field(
        default_factory=lambda: [SensorChannel.POSITION, SensorChannel.HEADING, SensorChannel.ATTITUDE,
                                 SensorChannel.SENSOR_DEPTH, SensorChannel.ALTITUDE],
        description="Channels the latency model is applied to")
    ancillary_margin: float = Field(default=120.0, ge=0, description="Ancillary output window padding, s")
    write_ancillary: bool = Field(default=True, description="Write ancillary attitude/heading files")
    null_detection_mask: int = Field(default=0x70, ge=0, le=255, description="Detection bits that null a beam when bit 7 is set")
    default_sound_velocity: float = Field(default=1500.0, gt=0, description="Half-space velocity when no profile is given, m/s")

    @validator('sensor_depth_filter_taper')
    def validate_taper(cls, v, values):
        if v is not None and values.get('sensor_depth_filter_window', 0.0) <= 0:
            raise ValueError("sensor_depth_filter_taper requires sensor_depth_filter_window > 0")
        return v


class ProcessingSummary(BaseModel):
    """Counts accumulated over a two-pass run."""
    samples: Dict[str, int] = Field(default_factory=dict, description="Samples read per channel")
    pings: int = 0
    beams_valid: int = 0
    beams_invalid: int = 0
    beams_flagged: int = 0
    convergence_failures: int = 0
    ray_terminations: int = 0
    sensor_gaps: int = 0
    start_time: Optional[float] = None
    end_time: Optional[float] = None
    warnings: List[str] = Field(default_factory=list)


class JobDTO(BaseModel):
    """File-level processing job."""
    pings_file: str = Field(..., description="JSON lines file of Ping records")
    output_root: str = Field(..., description="Output path prefix")
    svp_file: Optional[str] = Field(default=None, description="Two-column depth/velocity table")
    latency_file: Optional[str] = Field(default=None, description="Two-column time/latency table")
    offsets_file: Optional[str] = Field(default=None, description="SensorOffsetGeometry JSON")
    sensor_files: Dict[SensorChannel, str] = Field(default_factory=dict, description="Columnar sensor text files by channel")
    config: ProcessingConfigDTO = Field(default_factory=ProcessingConfigDTO)
