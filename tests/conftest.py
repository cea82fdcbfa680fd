import numpy as np
import pytest
from types import SimpleNamespace

from mdp.base import MDP, DiscreteSpace, ObservationSpace, StepReply
from qlearning.network import ValueFunction

OBSERVATION_SHAPE = (3, 10, 10)


class FakeMDP(MDP):
    ''' Replays a scripted list of StepReply, or a constant one when the script runs out '''

    def __init__(self, shape=OBSERVATION_SHAPE, num_actions=2, replies=None, default_reply=None, fail_on_step=None):
        self._observation_space = ObservationSpace(shape)
        self._action_space = DiscreteSpace(num_actions)
        self.replies = list(replies or [])
        self.default_reply = default_reply or StepReply(np.zeros(shape), 0.0, False, None)
        self.fail_on_step = fail_on_step
        self.actions = []
        self.reset_count = 0
        self.done = False

    @property
    def observation_space(self):
        return self._observation_space

    @property
    def action_space(self):
        return self._action_space

    def reset(self):
        self.reset_count += 1
        self.done = False
        return np.zeros(self._observation_space.shape)

    def step(self, action):
        if self.fail_on_step is not None and len(self.actions) == self.fail_on_step:
            raise RuntimeError("environment crashed")
        self.actions.append(action)
        reply = self.replies.pop(0) if self.replies else self.default_reply
        self.done = reply.done
        return reply

    def is_done(self):
        return self.done


class FakeValueFunction(ValueFunction):
    def __init__(self, q_values=(1.0, 0.5), fail=False, fail_fit=False):
        self.q_values = np.asarray(q_values, dtype=np.float32)
        self.fail = fail
        self.fail_fit = fail_fit
        self.output_calls = []
        self.fit_batches = []

    def output(self, observation):
        if self.fail:
            raise RuntimeError("network exploded")
        self.output_calls.append(observation)
        return self.q_values.copy()

    def fit(self, batch):
        if self.fail_fit:
            raise RuntimeError("update diverged")
        self.fit_batches.append(list(batch))
        return 0.0


def make_args(**overrides):
    args = dict(
        batch_size=2,
        reward_factor=1.0,
        memory_capacity=10,
        update_start=0,
        eps_start=0.0,
        eps_end=0.0,
        eps_nb_step=100,
        n_step=1,
        gamma=0.99,
        seed=123,
        max_step=100,
        max_epoch_step=50,
    )
    args.update(overrides)
    return SimpleNamespace(**args)


@pytest.fixture
def fake_mdp():
    return FakeMDP()


@pytest.fixture
def fake_value_function():
    return FakeValueFunction()


@pytest.fixture
def args():
    return make_args()


@pytest.fixture
def rng():
    return np.random.default_rng(123)
