"""Protocol layer: command builders, song tables, sensor frame decoding and reassembly."""

from .commands import Command, build_command
from .song import Note, NoteDuration, SongNote
from .sensors import SensorFrame, SENSOR_FRAME_SIZE
from .assembler import FrameAssembler, RequestThrottle
