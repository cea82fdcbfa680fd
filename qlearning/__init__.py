"""
The qlearning module implements discrete-action Q-learning with experience replay. It mainly consists of the following components:

1. Observation, Transition (observation.py)
2. ReplayMemory, ReplayMemoryExperienceHandler (replay_memory.py)
3. HistoryProcessor (history.py)  optional frame stacking and skipping
4. ValueFunction, DQN (network.py)  includes dueling and double
5. EpsGreedy (policy.py)
6. QLearningDiscrete (learning.py)
"""

"""
QLearningDiscrete (learning.py)

Initialization:
- QLearningDiscrete(mdp, value_function, args, history_processor=None, rng=None)
    - mdp: mdp.MDP object
    - value_function: anything with output(observation) and fit(batch), e.g. DQN
    - args: Hyperparameters (config.Config or SimpleNamespace)
    - rng: numpy Generator shared by exploration and sampling, default_rng(args.seed) if None

Use:
- obs = trainer.init_mdp()
- step_return = trainer.train_step(obs)
    - step_return.max_q: largest action-value seen (nan on skipped frames)
    - step_return.step_reply: (observation, reward, done, info), reward already scaled by reward_factor
- for stats in trainer.train(): ...
    - one EpisodeStats(reward, steps, mean_q, loss, epsilon) per episode
"""

"""
ReplayMemoryExperienceHandler (replay_memory.py)

Use:
- handler.add_experience(obs, action, reward, is_terminal)
    - finishes the previous transition with obs as its successor, starts a new one
- handler.set_final_observation(obs)
    - finishes the previous transition at the end of an episode
- handler.generate_training_batch(batch_size)
    - min(batch_size, available) transitions, uniform without replacement, [] when empty

Data structure:
- memory: ring buffer of Transition(observation, action, reward, is_terminal, next_observation, n_steps)
    - oldest transition is overwritten first once capacity is reached
"""
from .observation import Observation, PendingTransition, Transition, StepReturn
from .replay_memory import ReplayMemory, ReplayMemoryExperienceHandler
from .history import HistoryConfiguration, HistoryProcessor
from .network import ValueFunction, DQN, DuelingQNetwork
from .policy import EpsGreedy, GreedyPolicy
from .learning import QLearningDiscrete, EpisodeStats
