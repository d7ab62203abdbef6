"""Video frame source for scanning recorded footage."""

from collections.abc import Iterator
from pathlib import Path

import cv2
import numpy as np

from .imaging import bgr_to_rgba
from .models import VideoInfo


class VideoFrameSource:
    """Reads a video file and yields RGBA frames."""

    def __init__(self, video_path: Path, every: int = 1, max_frames: int | None = None):
        """Initialize frame source.

        Args:
            video_path: Path to video file
            every: Yield every Nth frame
            max_frames: Stop after yielding this many frames (None = all)

        Raises:
            ValueError: If the video cannot be opened or every < 1.
        """
        if every < 1:
            msg = f"every must be >= 1, got {every}"
            raise ValueError(msg)
        self.video_path = Path(video_path)
        self.every = every
        self.max_frames = max_frames
        self.video_info = self._get_video_info()

    def _get_video_info(self) -> VideoInfo:
        """Extract video information.

        Returns:
            VideoInfo with fps, total_frames, width, height
        """
        cap = self.open()
        fps = cap.get(cv2.CAP_PROP_FPS)
        total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        cap.release()

        return VideoInfo(
            fps=fps,
            total_frames=total_frames,
            width=width,
            height=height,
        )

    @property
    def info(self) -> VideoInfo:
        return self.video_info

    @property
    def expected_frames(self) -> int:
        """Number of frames iteration will yield, as far as the header tells."""
        count = -(-self.video_info.total_frames // self.every)
        if self.max_frames is not None:
            count = min(count, self.max_frames)
        return count

    def open(self) -> cv2.VideoCapture:
        """Open video for reading.

        Returns:
            OpenCV VideoCapture object
        """
        cap = cv2.VideoCapture(str(self.video_path))
        if not cap.isOpened():
            raise ValueError(f"Could not open video: {self.video_path}")
        return cap

    def __iter__(self) -> Iterator[tuple[int, np.ndarray]]:
        """Yield (frame_index, rgba_frame) pairs."""
        cap = self.open()
        yielded = 0
        index = 0
        try:
            while self.max_frames is None or yielded < self.max_frames:
                ok, frame = cap.read()
                if not ok:
                    break
                if index % self.every == 0:
                    yield index, bgr_to_rgba(frame)
                    yielded += 1
                index += 1
        finally:
            cap.release()
