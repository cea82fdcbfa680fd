import logging

import numpy as np
import gymnasium as gym

from .base import MDP, MDPError, DiscreteSpace, ObservationSpace, StepReply

logger = logging.getLogger(__name__)


class GymMDP(MDP):
    ''' Adapt a gymnasium environment with a Discrete action space to the MDP contract '''

    def __init__(self, env: gym.Env, seed=None):
        if not isinstance(env.action_space, gym.spaces.Discrete):
            raise MDPError(f"Only Discrete action spaces are supported, got {env.action_space}")
        self.env = env
        self.seed = seed
        self._action_space = DiscreteSpace(env.action_space.n)
        self._observation_space = ObservationSpace(env.observation_space.shape)
        self.done = True

    @classmethod
    def make(cls, env_id, seed=None, **kwargs):
        return cls(gym.make(env_id, **kwargs), seed=seed)

    @property
    def observation_space(self):
        return self._observation_space

    @property
    def action_space(self):
        return self._action_space

    def reset(self):
        # seed only once, later resets continue the env's own random stream
        obs, _ = self.env.reset(seed=self.seed)
        self.seed = None
        self.done = False
        return self._check_obs(np.asarray(obs))

    def step(self, action):
        if not self._action_space.contains(action):
            raise ValueError(f"Action {action} outside of {self._action_space}")
        try:
            obs, reward, terminated, truncated, info = self.env.step(int(action))
        except Exception as e:
            raise MDPError(f"Environment step failed with action {action}") from e
        self.done = bool(terminated or truncated)
        return StepReply(self._check_obs(np.asarray(obs)), float(reward), self.done, info)

    def is_done(self):
        return self.done

    def close(self):
        self.env.close()

    def _check_obs(self, obs):
        if not self._observation_space.contains(obs):
            raise MDPError(f"Observation shape {obs.shape} does not match {self._observation_space}")
        return obs
