import logging
import math
from typing import NamedTuple, Optional

import numpy as np

from config import validate_config
from .observation import Observation, StepReturn
from .policy import EpsGreedy
from .replay_memory import ReplayMemoryExperienceHandler
from mdp.base import StepReply

logger = logging.getLogger(__name__)


def to_observation(raw_observation, history_processor=None, first=False, last=False):
    ''' Wrap a raw frame directly, or fold it through the history processor '''
    if history_processor is None:
        return Observation(raw_observation)
    if first:
        return history_processor.reset(raw_observation)
    return history_processor.process(raw_observation, force=last)


class EpisodeStats(NamedTuple):
    reward: float
    steps: int
    mean_q: float
    loss: Optional[float]
    epsilon: float


class QLearningDiscrete:
    '''
    Discrete-action Q-learning with experience replay.

    The trainer owns the experience handler and its exploration policy; the
    MDP, the value function and the optional history processor are injected.
    `train_step` is one full environment step: act, record, maybe learn. It
    never resets the MDP, episode boundaries belong to `init_mdp` /
    `run_epoch` or to the caller.
    '''

    def __init__(self, mdp, value_function, args, history_processor=None, rng=None):
        validate_config(args)
        self.mdp               = mdp
        self.value_function    = value_function
        self.args              = args
        self.history_processor = history_processor
        self.rng               = rng if rng is not None else np.random.default_rng(getattr(args, 'seed', None))

        self.num_actions       = mdp.action_space.n
        self.reward_factor     = getattr(args, 'reward_factor', 1.0)
        self.update_start      = getattr(args, 'update_start', 0)
        self.experience_handler = ReplayMemoryExperienceHandler.from_args(args, rng=self.rng)
        self.policy            = EpsGreedy(self.num_actions, args.eps_start, args.eps_end, args.eps_nb_step, rng=self.rng)

        self.step_count        = 0    # never reset during a run
        self.epoch_count       = 0
        self.last_action       = mdp.action_space.noop()
        self.transition_start  = None  # last real observation while frames are being skipped
        self.accu_reward       = 0.0   # scaled reward gathered since transition_start

    def to_observation(self, raw_observation, first=False, last=False):
        return to_observation(raw_observation, self.history_processor, first, last)

    def init_mdp(self):
        ''' Reset the MDP and per-episode state, return the first observation '''
        raw = self.mdp.reset()
        self.experience_handler.reset()
        self.last_action = self.mdp.action_space.noop()
        self.transition_start = None
        self.accu_reward = 0.0
        return self.to_observation(raw, first=True)

    def train_step(self, observation: Observation) -> StepReturn:
        max_q = math.nan  # nan on skipped frames, ignored by the statistics
        repeat = observation.skipped and self.transition_start is not None

        # On a skipped frame repeat the last action
        if repeat:
            action = self.last_action
            transition_start = self.transition_start
            accu_reward = self.accu_reward
        else:
            q_values = self.value_function.output(observation)
            max_q = float(np.max(q_values))
            action = self.policy.select_action(q_values, self.step_count)
            transition_start = observation
            accu_reward = 0.0

        # Failures here propagate before any state is touched
        raw_reply = self.mdp.step(action)
        # the last frame of an episode is always folded, never skipped
        next_observation = self.to_observation(raw_reply.observation, last=raw_reply.done)
        accu_reward += raw_reply.reward * self.reward_factor

        self.last_action = action
        if not next_observation.skipped:
            # rewards of the skipped frames belong to the transition that started them
            self.experience_handler.add_experience(transition_start, action, accu_reward, raw_reply.done)
            self.transition_start = None
            self.accu_reward = 0.0
        else:
            self.transition_start = transition_start
            self.accu_reward = accu_reward
        if raw_reply.done:
            self.experience_handler.set_final_observation(next_observation)
        # the step is taken and recorded, a failing update below does not undo it
        self.step_count += 1

        loss = None
        if self.experience_handler.get_training_batch_size() >= self.update_start:
            batch = self.experience_handler.generate_training_batch()
            if batch:
                loss = self.value_function.fit(batch)

        return StepReturn(max_q, StepReply(next_observation, raw_reply.reward, raw_reply.done, raw_reply.info), loss)

    def _close_truncated(self, observation):
        ''' Record what is still open when an episode stops before done, return the final observation '''
        if observation.skipped:
            observation = self.history_processor.flush()
        if self.transition_start is not None:
            self.experience_handler.add_experience(self.transition_start, self.last_action, self.accu_reward, False)
            self.transition_start = None
            self.accu_reward = 0.0
        self.experience_handler.set_final_observation(observation)
        return observation

    def run_epoch(self) -> EpisodeStats:
        ''' Play one episode, learning along the way '''
        obs = self.init_mdp()
        max_epoch_step = getattr(self.args, 'max_epoch_step', None)
        reward, steps, losses, q_values = 0.0, 0, [], []
        done = False

        while not done and (max_epoch_step is None or steps < max_epoch_step):
            step_return = self.train_step(obs)
            reply = step_return.step_reply
            if not math.isnan(step_return.max_q):
                q_values.append(step_return.max_q)
            if step_return.loss is not None:
                losses.append(step_return.loss)
            reward += reply.reward
            obs = reply.observation
            done = reply.done
            steps += 1

        if not done:
            self._close_truncated(obs)

        self.epoch_count += 1
        stats = EpisodeStats(
            reward=reward,
            steps=steps,
            mean_q=float(np.mean(q_values)) if q_values else math.nan,
            loss=float(np.mean(losses)) if losses else None,
            epsilon=self.policy.epsilon(self.step_count),
        )
        logger.debug("Epoch %d: %s", self.epoch_count, stats)
        return stats

    def train(self):
        ''' Run episodes until max_step steps have been taken, yielding each episode's stats '''
        while self.step_count < self.args.max_step:
            yield self.run_epoch()
        logger.info("Training finished after %d steps and %d episodes", self.step_count, self.epoch_count)
