'''
Contract between the training loop and an environment.

An MDP is stepped with an integer action and answers with a StepReply
(raw next observation, reward, done flag, info). Observations handed out
here are raw frames; turning them into `Observation` objects is the job
of the trainer (and of the history processor when one is configured).
'''
from abc import ABC, abstractmethod
from typing import Any, NamedTuple, Tuple

import numpy as np


class MDPError(RuntimeError):
    ''' The environment failed to step or answered with a malformed observation '''
    pass


class StepReply(NamedTuple):
    observation: Any
    reward: float
    done: bool
    info: Any = None


class DiscreteSpace:
    def __init__(self, n):
        if n <= 0:
            raise ValueError(f"DiscreteSpace needs at least one action, got {n}")
        self.n = int(n)

    def noop(self) -> int:
        return 0  # by convention the first action is NO_OP

    def contains(self, action) -> bool:
        return 0 <= int(action) < self.n

    def __repr__(self):
        return f"DiscreteSpace({self.n})"


class ObservationSpace:
    def __init__(self, shape):
        self.shape: Tuple[int, ...] = tuple(int(d) for d in shape)

    def contains(self, observation) -> bool:
        return np.shape(observation) == self.shape

    def __repr__(self):
        return f"ObservationSpace(shape={self.shape})"


class MDP(ABC):
    @property
    @abstractmethod
    def observation_space(self) -> ObservationSpace:
        ...

    @property
    @abstractmethod
    def action_space(self) -> DiscreteSpace:
        ...

    @abstractmethod
    def reset(self):
        ''' Start a new episode and return its first raw observation '''

    @abstractmethod
    def step(self, action: int) -> StepReply:
        ...

    @abstractmethod
    def is_done(self) -> bool:
        ...

    def close(self):
        pass
