import numpy as np
import pytest
import gymnasium as gym
from gymnasium import spaces

from mdp import ChainEnv, GymMDP, MDPError


def test_chain_reaches_far_end():
    mdp = GymMDP(ChainEnv(length=5), seed=0)
    obs = mdp.reset()
    np.testing.assert_array_equal(obs, [0, 1, 0, 0, 0])
    assert mdp.action_space.n == 2
    assert mdp.observation_space.shape == (5,)

    rewards = []
    for _ in range(3):
        reply = mdp.step(1)
        rewards.append(reply.reward)
    assert reply.done and mdp.is_done()
    assert reply.info['position'] == 4
    assert rewards[-1] == pytest.approx(0.99)


def test_chain_near_end_pays_small_reward():
    mdp = GymMDP(ChainEnv(length=5))
    mdp.reset()
    reply = mdp.step(0)
    assert reply.done
    assert reply.reward == pytest.approx(0.09)


def test_chain_pixel_observations():
    env = ChainEnv(length=4, obs_type='pixels')
    obs, _ = env.reset()
    assert obs.shape == (8, 32)
    assert obs[:, 8:16].min() == 255.0
    assert obs[:, :8].max() == 0.0


def test_action_out_of_range_is_rejected():
    mdp = GymMDP(ChainEnv(length=5))
    mdp.reset()
    with pytest.raises(ValueError):
        mdp.step(2)


class BrokenEnv(gym.Env):
    def __init__(self, obs_shape=(3,), crash=False):
        self.action_space = spaces.Discrete(2)
        self.observation_space = spaces.Box(0.0, 1.0, shape=(3,), dtype=np.float32)
        self.obs_shape = obs_shape
        self.crash = crash

    def reset(self, seed=None, options=None):
        super().reset(seed=seed)
        return np.zeros(3, dtype=np.float32), {}

    def step(self, action):
        if self.crash:
            raise RuntimeError("emulator died")
        return np.zeros(self.obs_shape, dtype=np.float32), 0.0, False, False, {}


def test_malformed_observation_raises_mdp_error():
    mdp = GymMDP(BrokenEnv(obs_shape=(4,)))
    mdp.reset()
    with pytest.raises(MDPError):
        mdp.step(0)


def test_step_failure_is_wrapped():
    mdp = GymMDP(BrokenEnv(crash=True))
    mdp.reset()
    with pytest.raises(MDPError) as excinfo:
        mdp.step(1)
    assert isinstance(excinfo.value.__cause__, RuntimeError)


def test_continuous_action_space_is_rejected():
    env = BrokenEnv()
    env.action_space = spaces.Box(-1.0, 1.0, shape=(1,))
    with pytest.raises(MDPError):
        GymMDP(env)
