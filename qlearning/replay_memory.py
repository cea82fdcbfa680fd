import logging
import threading
from collections import deque

import numpy as np

from config import ConfigurationError
from .observation import PendingTransition, Transition

logger = logging.getLogger(__name__)

'''
n_step_buffer example (n_step=3):
deque([
    Transition(obs1, action1, reward1, done1, next_obs1),
    Transition(obs2, action2, reward2, done2, next_obs2),
    Transition(obs3, action3, reward3, done3, next_obs3)
], maxlen=3)

memory element after folding:
Transition(obs1, action1, reward1 + g*reward2 + g^2*reward3, done3, next_obs3, n_steps=3)
'''

class ReplayMemory:
    def __init__(self, capacity, n_step=1, gamma=0.99, rng=None):
        if capacity <= 0:
            raise ConfigurationError(f"Replay memory capacity must be positive, got {capacity}")
        if n_step < 1:
            raise ConfigurationError(f"n_step must be at least 1, got {n_step}")
        self.capacity      = capacity                          # Replay buffer capacity
        self.memory        = np.empty(capacity, dtype=object)  # Main buffer of folded transitions
        self.position      = 0                                 # Next write slot, wraps around (ring buffer)
        self.size          = 0                                 # Number of filled slots
        self.n_step        = n_step                            # Length of the multi-step return
        self.gamma         = gamma                             # Discount used when folding rewards
        self.n_step_buffer = deque(maxlen=n_step)              # Most recent steps not folded yet
        self.rng           = rng if rng is not None else np.random.default_rng()

    def push(self, transition: Transition):
        self.n_step_buffer.append(transition)

        # Once n_step_buffer is full, fold it into one transition and store it
        if len(self.n_step_buffer) == self.n_step:
            self._store(self._get_n_step_info())
            self.n_step_buffer.popleft()

        # A terminal step flushes whatever is left
        if transition.is_terminal:
            self.cut()

    def cut(self):
        while len(self.n_step_buffer) > 0:
            self._store(self._get_n_step_info(len(self.n_step_buffer)))
            self.n_step_buffer.popleft()

    def _store(self, transition):
        if self.size == self.capacity:
            logger.debug("Replay memory full, overwriting slot %d", self.position)
        self.memory[self.position] = transition
        self.position = (self.position + 1) % self.capacity
        self.size = min(self.size + 1, self.capacity)

    def _get_n_step_info(self, n=None):
        if n is None:
            n = self.n_step
        first = self.n_step_buffer[0]
        last = self.n_step_buffer[n-1]
        if n == 1:
            return first

        # Discounted sum of the n rewards, successor and done flag of the n-th step
        reward = sum(self.gamma ** i * self.n_step_buffer[i].reward for i in range(n))
        return Transition(first.observation, first.action, reward, last.is_terminal, last.next_observation, n)

    def sample(self, batch_size):
        count = min(batch_size, len(self))
        if count <= 0:
            return []
        inds = self.rng.choice(len(self), count, replace=False)
        return [self.memory[i] for i in inds]

    def transitions(self):
        ''' Stored transitions from oldest to newest '''
        if self.size < self.capacity:
            return list(self.memory[:self.size])
        return list(self.memory[self.position:]) + list(self.memory[:self.position])

    def __len__(self):
        return self.size


class ReplayMemoryExperienceHandler:
    '''
    Turns the trainer's stream of (observation, action, reward, done) into
    complete transitions. The transition started at one step is finished by
    the observation recorded at the next one, or by the final observation
    at the end of an episode.
    '''

    def __init__(self, capacity, batch_size, n_step=1, gamma=0.99, rng=None):
        if batch_size <= 0:
            raise ConfigurationError(f"batch_size must be positive, got {batch_size}")
        if batch_size > capacity:
            raise ConfigurationError(f"batch_size ({batch_size}) exceeds replay capacity ({capacity})")
        self.memory = ReplayMemory(capacity, n_step, gamma, rng)
        self.batch_size = batch_size
        self.pending = None
        self._lock = threading.Lock()

    @classmethod
    def from_args(cls, args, rng=None):
        return cls(args.memory_capacity, args.batch_size, getattr(args, 'n_step', 1), getattr(args, 'gamma', 0.99), rng)

    def add_experience(self, observation, action, reward, is_terminal):
        with self._lock:
            self._complete_pending(observation)
            self.pending = PendingTransition(observation, int(action), float(reward), bool(is_terminal))

    def set_final_observation(self, observation):
        with self._lock:
            self._complete_pending(observation)
            self.pending = None

    def _complete_pending(self, observation):
        if self.pending is not None:
            self.memory.push(self.pending.complete(observation))

    def generate_training_batch(self, batch_size=None):
        with self._lock:
            return self.memory.sample(self.batch_size if batch_size is None else batch_size)

    def get_training_batch_size(self):
        return len(self.memory)

    def reset(self):
        with self._lock:
            self.pending = None
            # n-step leftovers of a truncated episode must not fold into the next one
            self.memory.cut()
