"""
output.py — Frame Records and Sinks
====================================
The kernel never touches files. At the end of every frame it builds a Frame
(cell-centered velocity + density) and hands it to whatever sinks the caller
attached. A sink only has to accept one frame at a time.

Sinks shipped here:
  - MemorySink      : keeps frames in a list (tests, notebooks)
  - TextFrameWriter : the plain-text exchange format below
  - NpyFrameWriter  : one .npy file per array per frame + metadata.json

Text format (one file, all frames):

    FRAMES 3
    BEGIN FRAME 0
    u v;u v;u v;u v          ← row y=0, one "u v" pair per column
    u v;u v;u v;u v          ← row y=1
    ...
    END FRAME
    BEGIN FRAME 1
    ...

The header records the total number of frames so a consumer can preallocate.
read_frames() parses the format back and rejects anything malformed.
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import numpy as np

from .errors import FieldDataError


HEADER_TAG = "FRAMES"
BEGIN_TAG = "BEGIN FRAME"
END_TAG = "END FRAME"
COLUMN_SEP = ";"


@dataclass
class Frame:
    """
    State of the simulation at the end of one frame.

    velocity : (height, width, 2) cell-centered (u, v) per cell
    density  : (height, width) cell-centered density, None when read from text
    """
    index: int
    time: float
    velocity: np.ndarray
    density: Optional[np.ndarray] = None
    stats: dict = field(default_factory=dict)

    @property
    def width(self) -> int:
        return self.velocity.shape[1]

    @property
    def height(self) -> int:
        return self.velocity.shape[0]


class FrameSink(ABC):
    """Anything that can accept one finished frame at a time."""

    @abstractmethod
    def accept(self, frame: Frame):
        pass

    def close(self):
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class MemorySink(FrameSink):
    """Collects frames in memory."""

    def __init__(self):
        self.frames: list[Frame] = []

    def accept(self, frame: Frame):
        self.frames.append(frame)

    def __len__(self):
        return len(self.frames)


def format_frame(frame: Frame) -> str:
    """Render one frame as a BEGIN/END block (trailing newline included)."""
    lines = [f"{BEGIN_TAG} {frame.index}"]
    for row in frame.velocity:
        lines.append(COLUMN_SEP.join(f"{float(u)!r} {float(v)!r}" for u, v in row))
    lines.append(END_TAG)
    return "\n".join(lines) + "\n"


class TextFrameWriter(FrameSink):
    """
    Streams frames to a text file.

    The total frame count has to be known up front because it is written as
    the header line. Writing more frames than announced is refused; closing
    with fewer is reported as an error unless something else already failed.
    """

    def __init__(self, path, n_frames: int):
        if n_frames < 0:
            raise FieldDataError(f"Frame count must be non-negative, got {n_frames}")
        self.path = Path(path)
        self.n_frames = n_frames
        self.written = 0
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._file = open(self.path, "w")
        self._file.write(f"{HEADER_TAG} {n_frames}\n")

    def accept(self, frame: Frame):
        if self.written >= self.n_frames:
            raise FieldDataError(
                f"{self.path}: header announced {self.n_frames} frames, "
                f"refusing frame {frame.index}")
        self._file.write(format_frame(frame))
        self.written += 1

    def close(self):
        if not self._file.closed:
            self._file.close()

    def __exit__(self, exc_type, exc, tb):
        self.close()
        if exc_type is None and self.written != self.n_frames:
            raise FieldDataError(
                f"{self.path}: header announced {self.n_frames} frames, "
                f"only {self.written} written")


class NpyFrameWriter(FrameSink):
    """
    Saves frames as .npy arrays.

    Directory structure on disk:
      out/
        frame_0000_velocity.npy   ← shape (H, W, 2)
        frame_0000_density.npy    ← shape (H, W)
        ...
        metadata.json             ← grid params, frame list

    metadata.json is rewritten on close().
    """

    def __init__(self, output_dir, metadata: Optional[dict] = None):
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.metadata = dict(metadata or {})
        self.frames: list[dict] = []

    def accept(self, frame: Frame):
        prefix = self.output_dir / f"frame_{frame.index:04d}"
        np.save(f"{prefix}_velocity.npy", frame.velocity)
        if frame.density is not None:
            np.save(f"{prefix}_density.npy", frame.density)
        self.frames.append({"index": frame.index, "time": frame.time})

    def close(self):
        meta = dict(self.metadata)
        meta["n_frames"] = len(self.frames)
        meta["frames"] = self.frames
        with open(self.output_dir / "metadata.json", "w") as f:
            json.dump(meta, f, indent=2)


def _parse_row(text: str, lineno: int) -> list[tuple[float, float]]:
    row = []
    for column in text.split(COLUMN_SEP):
        values = column.split()
        if len(values) != 2:
            raise FieldDataError(
                f"line {lineno}: expected 2 values per column, got {len(values)}")
        try:
            row.append((float(values[0]), float(values[1])))
        except ValueError as exc:
            raise FieldDataError(f"line {lineno}: {exc}") from exc
    return row


def parse_frames(lines) -> list[Frame]:
    """
    Parse the text frame format from an iterable of lines.

    Every frame must have the same number of rows and every row the same
    number of columns; the number of frames must match the header.
    """
    frames = []
    expected = None
    current = None          # rows of the frame being read
    current_index = None
    shape = None

    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line:
            continue

        if expected is None:
            parts = line.split()
            if len(parts) != 2 or parts[0] != HEADER_TAG or not parts[1].isdigit():
                raise FieldDataError(f"line {lineno}: expected '{HEADER_TAG} <n>' header")
            expected = int(parts[1])
            continue

        if line.startswith(BEGIN_TAG):
            if current is not None:
                raise FieldDataError(f"line {lineno}: frame {current_index} not closed")
            tail = line[len(BEGIN_TAG):].strip()
            try:
                current_index = int(tail)
            except ValueError:
                raise FieldDataError(f"line {lineno}: bad frame index '{tail}'") from None
            current = []
        elif line == END_TAG:
            if current is None:
                raise FieldDataError(f"line {lineno}: '{END_TAG}' without '{BEGIN_TAG}'")
            if not current:
                raise FieldDataError(f"line {lineno}: frame {current_index} is empty")
            velocity = np.array(current, dtype=np.float64)
            if shape is None:
                shape = velocity.shape
            elif velocity.shape != shape:
                raise FieldDataError(
                    f"line {lineno}: frame {current_index} has shape "
                    f"{velocity.shape[:2]}, expected {shape[:2]}")
            frames.append(Frame(index=current_index, time=float("nan"), velocity=velocity))
            current = None
        else:
            if current is None:
                raise FieldDataError(f"line {lineno}: data outside of a frame")
            row = _parse_row(line, lineno)
            if current and len(row) != len(current[0]):
                raise FieldDataError(
                    f"line {lineno}: expected {len(current[0])} columns, got {len(row)}")
            current.append(row)

    if expected is None:
        raise FieldDataError("empty frame file: missing header")
    if current is not None:
        raise FieldDataError(f"frame {current_index} not closed at end of file")
    if len(frames) != expected:
        raise FieldDataError(f"header announced {expected} frames, found {len(frames)}")
    return frames


def read_frames(path) -> list[Frame]:
    with open(Path(path)) as f:
        return parse_frames(f)
