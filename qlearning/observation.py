from typing import Any, NamedTuple, Optional

import numpy as np

from mdp.base import StepReply


class Observation:
    '''
    Read-only view of what the agent sees at one step.

    A skipped observation repeats the data of the last real one; the
    trainer keeps acting with its previous action on those steps.
    '''
    __slots__ = ('_data', '_skipped')

    def __init__(self, data, skipped=False):
        arr = np.array(data, dtype=np.float32)  # private copy
        arr.setflags(write=False)
        object.__setattr__(self, '_data', arr)
        object.__setattr__(self, '_skipped', bool(skipped))

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def skipped(self) -> bool:
        return self._skipped

    @property
    def shape(self):
        return self._data.shape

    def as_skipped(self) -> 'Observation':
        return Observation(self._data, skipped=True)

    def __setattr__(self, name, value):
        raise AttributeError("Observation is immutable")

    def __eq__(self, other):
        if not isinstance(other, Observation):
            return NotImplemented
        return self._skipped == other._skipped and np.array_equal(self._data, other._data)

    def __hash__(self):
        return hash((self._data.shape, self._data.tobytes(), self._skipped))

    def __repr__(self):
        return f"Observation(shape={self._data.shape}, skipped={self._skipped})"


class PendingTransition(NamedTuple):
    ''' State and action whose successor observation has not arrived yet '''
    observation: Observation
    action: int
    reward: float
    is_terminal: bool

    def complete(self, next_observation: Observation) -> 'Transition':
        return Transition(self.observation, self.action, self.reward, self.is_terminal, next_observation)


class Transition(NamedTuple):
    observation: Observation
    action: int
    reward: float
    is_terminal: bool
    next_observation: Observation
    n_steps: int = 1


class StepReturn(NamedTuple):
    max_q: float  # nan when the step repeated the previous action
    step_reply: StepReply
    loss: Optional[Any] = None
