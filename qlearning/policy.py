import logging

import numpy as np

from common import linear_decay

logger = logging.getLogger(__name__)


def max_action(q_values):
    ''' Index of the largest action-value, ties resolve to the lowest index '''
    return int(np.argmax(q_values))


class GreedyPolicy:
    def __init__(self, value_function):
        self.value_function = value_function

    def next_action(self, observation):
        return max_action(self.value_function.output(observation))

    def play(self, mdp, to_observation, max_epoch_step=None):
        ''' Run one greedy episode and return its total (unscaled) reward '''
        obs = to_observation(mdp.reset(), first=True)
        action = 0
        total_reward, steps = 0.0, 0
        while not mdp.is_done() and (max_epoch_step is None or steps < max_epoch_step):
            if not obs.skipped:
                action = self.next_action(obs)
            reply = mdp.step(action)
            total_reward += reply.reward
            obs = to_observation(reply.observation)
            steps += 1
        return total_reward


class EpsGreedy:
    '''
    Epsilon-greedy exploration. Epsilon is annealed linearly from eps_start
    to eps_end over eps_nb_step steps (counted by the caller), then held.
    '''

    def __init__(self, num_actions, eps_start, eps_end, eps_nb_step, rng=None):
        self.num_actions = num_actions
        self.eps_start   = eps_start
        self.eps_end     = eps_end
        self.eps_nb_step = eps_nb_step
        self.rng         = rng if rng is not None else np.random.default_rng()

    def epsilon(self, step):
        return linear_decay(step, self.eps_nb_step, self.eps_start, self.eps_end)

    def select_action(self, q_values, step):
        if self.rng.random() < self.epsilon(step):
            return int(self.rng.integers(self.num_actions))
        return max_action(q_values)
