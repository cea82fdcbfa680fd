import numpy as np
import gymnasium as gym
from gymnasium import spaces

CELL_PIXELS = 8


class Chain:
    def __init__(self, length):
        self.length = length
        self.reset()

    def reset(self):
        # The agent starts in the second cell, the cheap exit sits on the left end
        self.position = 1

    def handle(self, action):  # 0: move left, 1: move right
        if action == 1:
            self.position = min(self.position + 1, self.length - 1)
        else:
            self.position = max(self.position - 1, 0)

    def describe(self):
        one_hot = np.zeros(self.length, dtype=np.float32)
        one_hot[self.position] = 1.0
        return one_hot

    def render_frame(self):
        frame = np.zeros((CELL_PIXELS, self.length * CELL_PIXELS), dtype=np.float32)
        start = self.position * CELL_PIXELS
        frame[:, start:start + CELL_PIXELS] = 255.0
        return frame


class ChainEnv(gym.Env):
    '''
    Deterministic chain walk. Reaching the right end pays `far_reward`,
    the left end pays `near_reward`, both terminate the episode. Every
    move costs `step_cost`, so greedy agents that only see the near
    reward settle for it.

    obs_type='onehot' gives a (length,) vector, obs_type='pixels' a
    (8, 8 * length) grayscale frame for use with a history processor.
    '''
    metadata = {'render_modes': []}

    def __init__(self, length=10, obs_type='onehot', near_reward=0.1, far_reward=1.0, step_cost=0.01):
        super(ChainEnv, self).__init__()
        if length < 3:
            raise ValueError("Chain length must be at least 3")
        if obs_type not in ('onehot', 'pixels'):
            raise ValueError(f"Unsupported obs_type: {obs_type}")
        self.chain = Chain(length)
        self.obs_type = obs_type
        self.near_reward = near_reward
        self.far_reward = far_reward
        self.step_cost = step_cost

        self.action_space = spaces.Discrete(2)
        if obs_type == 'onehot':
            self.observation_space = spaces.Box(0.0, 1.0, shape=(length,), dtype=np.float32)
        else:
            self.observation_space = spaces.Box(0.0, 255.0, shape=(CELL_PIXELS, length * CELL_PIXELS), dtype=np.float32)

    def reset(self, seed=None, options=None):
        super().reset(seed=seed)
        self.chain.reset()
        self.cnt = 0
        return self.get_input(), {}

    def step(self, action):
        if not self.action_space.contains(action):
            raise ValueError(f"Invalid action {action}")
        self.chain.handle(action)
        self.cnt += 1

        reward = -self.step_cost
        terminated = False
        if self.chain.position == self.chain.length - 1:
            reward += self.far_reward
            terminated = True
        elif self.chain.position == 0:
            reward += self.near_reward
            terminated = True

        return self.get_input(), reward, terminated, False, {'position': self.chain.position, 'steps': self.cnt}

    def get_input(self):
        if self.obs_type == 'onehot':
            return self.chain.describe()
        return self.chain.render_frame()
