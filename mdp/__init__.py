"""
Environment side of the training loop.

- MDP (base.py): abstract contract the trainer steps through
    - reset() -> raw observation
    - step(action) -> StepReply(observation, reward, done, info)
    - observation_space / action_space: ObservationSpace(shape), DiscreteSpace(n)
- GymMDP (gym_mdp.py): MDP over any gymnasium env with a Discrete action space
- ChainEnv (chain_env.py): small gymnasium env used for smoke training and tests

Usage:
    from mdp import GymMDP, ChainEnv
    mdp = GymMDP(ChainEnv(length=10), seed=123)
    obs = mdp.reset()
    obs, reward, done, info = mdp.step(1)
"""
from .base import MDP, MDPError, StepReply, DiscreteSpace, ObservationSpace
from .chain_env import ChainEnv
from .gym_mdp import GymMDP
