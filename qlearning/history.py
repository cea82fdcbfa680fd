"""
Frame history and frame skipping for pixel observations.

Each kept frame is converted to grayscale, cropped, rescaled and pushed into
a fixed-length history; the Observation handed to the trainer is the stack
of that history, shape (history_length, rescaled_height, rescaled_width).

Only every `skip_frame`-th step produces a fresh Observation. The steps in
between get a skipped Observation that repeats the last stack, and the
trainer keeps acting with its previous action on them. The frame passed to
`reset` is step 0 and is therefore always kept, and so is the last frame of
an episode (`process(..., force=True)` or `flush()`).
"""
import logging
from collections import deque

import numpy as np
import torch
import torch.nn.functional as F

from config import ConfigurationError
from .observation import Observation

logger = logging.getLogger(__name__)


class HistoryConfiguration:
    def __init__(self, history_length=4, rescaled_width=84, rescaled_height=84,
                 cropping_width=84, cropping_height=84, offset_x=0, offset_y=0, skip_frame=4):
        self.history_length  = history_length
        self.rescaled_width  = rescaled_width
        self.rescaled_height = rescaled_height
        self.cropping_width  = cropping_width
        self.cropping_height = cropping_height
        self.offset_x        = offset_x
        self.offset_y        = offset_y
        self.skip_frame      = skip_frame

        for name in ('history_length', 'rescaled_width', 'rescaled_height', 'cropping_width', 'cropping_height', 'skip_frame'):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive, got {getattr(self, name)}")
        if offset_x < 0 or offset_y < 0:
            raise ConfigurationError("Crop offsets must be non-negative")

    @classmethod
    def from_dict(cls, d):
        return cls(**d)

    @property
    def shape(self):
        return (self.history_length, self.rescaled_height, self.rescaled_width)


class HistoryProcessor:
    def __init__(self, conf: HistoryConfiguration):
        self.conf = conf
        self.history = deque(maxlen=conf.history_length)
        self.step_index = 0
        self.last_observation = None
        self.skipped_frame = None  # most recent raw frame not folded into the history

    def reset(self, raw_frame) -> Observation:
        self._fill(self.transform(raw_frame))
        self.step_index = 0
        self.skipped_frame = None
        return self.last_observation

    def _fill(self, frame):
        self.history.clear()
        for _ in range(self.conf.history_length):
            self.history.append(frame)
        self.last_observation = Observation(self.get_history())

    def process(self, raw_frame, force=False) -> Observation:
        '''
        Fold one frame. `force` keeps the frame even on a skip step, used for
        the last frame of an episode.
        '''
        step_index = self.step_index + 1
        keep = force or step_index % self.conf.skip_frame == 0

        if self.last_observation is None:
            # processing without a reset, seed the history with this frame
            self._fill(self.transform(raw_frame))
            self.step_index = step_index
            return self.last_observation if keep else self.last_observation.as_skipped()

        if not keep:
            self.skipped_frame = np.array(raw_frame)
            self.step_index = step_index
            return self.last_observation.as_skipped()

        frame = self.transform(raw_frame)
        self.step_index = step_index
        self.skipped_frame = None
        self.history.append(frame)
        self.last_observation = Observation(self.get_history())
        return self.last_observation

    def flush(self) -> Observation:
        ''' Fold the last skipped frame, if any, and return the current stack '''
        if self.skipped_frame is not None:
            self.history.append(self.transform(self.skipped_frame))
            self.skipped_frame = None
            self.last_observation = Observation(self.get_history())
        return self.last_observation

    def get_history(self):
        return np.stack(self.history, axis=0)

    def transform(self, raw_frame):
        ''' Grayscale, crop and rescale one frame to (rescaled_height, rescaled_width) '''
        frame = np.asarray(raw_frame, dtype=np.float32)
        if frame.ndim == 3:  # channel first (C, H, W)
            frame = frame.mean(axis=0)
        elif frame.ndim != 2:
            raise ConfigurationError(f"Expected a (H, W) or (C, H, W) frame, got shape {frame.shape}")

        conf = self.conf
        height, width = frame.shape
        if conf.offset_y + conf.cropping_height > height or conf.offset_x + conf.cropping_width > width:
            raise ConfigurationError(
                f"Crop window ({conf.offset_y}+{conf.cropping_height}, {conf.offset_x}+{conf.cropping_width}) "
                f"does not fit frame of shape {frame.shape}")
        frame = frame[conf.offset_y:conf.offset_y + conf.cropping_height,
                      conf.offset_x:conf.offset_x + conf.cropping_width]

        if frame.shape == (conf.rescaled_height, conf.rescaled_width):
            return np.ascontiguousarray(frame)

        # (1, 1, H, W) for F.interpolate
        t = torch.from_numpy(np.ascontiguousarray(frame)).unsqueeze(0).unsqueeze(0)
        t = F.interpolate(t, size=(conf.rescaled_height, conf.rescaled_width), mode='bilinear', align_corners=False)
        return t.squeeze(0).squeeze(0).numpy()
