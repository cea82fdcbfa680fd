import logging
import os
from abc import ABC, abstractmethod

import numpy as np
import torch as th
import torch.nn as nn
import torch.nn.init as init
import torch.optim as optim

from .observation import Observation

logger = logging.getLogger(__name__)


class ValueFunction(ABC):
    ''' Action-value estimator the trainer queries and fits '''

    @abstractmethod
    def output(self, observation) -> np.ndarray:
        ''' Action-values of one observation, shape (num_actions,) '''

    @abstractmethod
    def fit(self, batch):
        ''' One update from a list of Transition, returns the loss '''


def init_weights(m):
    if isinstance(m, nn.Linear):
        init.kaiming_uniform_(m.weight, nonlinearity='relu')
        if m.bias is not None:
            init.constant_(m.bias, 0)

def get_layers(initial_width, widths, final_width):
    layers = nn.ModuleList()
    in_width = initial_width
    for width in widths:
        layers.extend([
            nn.Linear(in_width, width),
            nn.ReLU()
        ])
        in_width = width
    layers.append(nn.Linear(in_width, final_width))
    return layers

def check_obs(obs, input_shape):  # Ensure the type is tensor and add the batch dimension when missing
    if not isinstance(obs, th.Tensor): obs = th.from_numpy(np.array(obs, dtype=np.float32))
    if   tuple(obs.shape) == tuple(input_shape):      return obs.unsqueeze(0)
    elif tuple(obs.shape[1:]) == tuple(input_shape):  return obs       # (batch size, ...)
    else:  raise ValueError(f"Shape Incorrect: {tuple(obs.shape)} for input shape {tuple(input_shape)}")


class DuelingQNetwork(nn.Module):
    def __init__(self, input_shape, num_actions, nn_widths):
        super(DuelingQNetwork, self).__init__()
        self.input_shape = tuple(input_shape)

        # flatten (to 1D) layer
        self.flat = nn.Flatten()
        input_size = int(np.prod(self.input_shape))

        # hidden layers, the last hidden width feeds both heads
        self.fc = get_layers(input_size, nn_widths[:-1], nn_widths[-1])

        # Value, Adv layers
        self.value = nn.Linear(nn_widths[-1], 1)
        self.adv = nn.Linear(nn_widths[-1], num_actions)

        self.apply(init_weights)  # initialize weights

    def forward(self, obs):
        x = self.flat(check_obs(obs, self.input_shape))
        for layer in self.fc:
            x = layer(x)
        x = th.relu(x)
        adv = self.adv(x)
        value = self.value(x)
        q_values = value + adv - th.mean(adv, dim=1, keepdim=True)  # Dueling DQN detail
        return q_values


class DQN(ValueFunction):
    '''
    Online / target network pair.

    The target of a transition is r + gamma^n * Q_target(s', a*) * (1 - done)
    with a* = argmax Q_online(s') for double DQN, argmax Q_target(s')
    otherwise. The TD error is clamped to [-error_clamp, error_clamp] when
    error_clamp is set. The target network is synced every
    target_update_interval fits.
    '''

    def __init__(self, input_shape, num_actions, args):
        self.args        = args
        self.input_shape = tuple(input_shape)
        self.num_actions = num_actions
        nn_widths        = list(getattr(args, 'nn_width', [64, 64]))
        self.online_net  = DuelingQNetwork(self.input_shape, num_actions, nn_widths)
        self.target_net  = DuelingQNetwork(self.input_shape, num_actions, nn_widths)
        self.update_target_network()

        weight_decay     = getattr(args, 'weight_decay', 0)  # Set to 0 if args.weight_decay is not provided
        self.optimizer   = optim.Adam(self.online_net.parameters(), lr=args.lr, weight_decay=weight_decay)
        self.loss_fn     = nn.MSELoss()
        self.gamma       = args.gamma
        self.double_dqn  = getattr(args, 'double_dqn', True)
        self.error_clamp = getattr(args, 'error_clamp', None)
        self.target_update_interval = getattr(args, 'target_update_interval', 100)
        self.learn_cnt   = 0
        self.latest_loss = None

    @th.no_grad()
    def update_target_network(self):
        self.target_net.load_state_dict(self.online_net.state_dict())

    @th.no_grad()
    def output(self, observation):
        data = observation.data if isinstance(observation, Observation) else observation
        return self.online_net(data)[0].cpu().numpy()

    def fit(self, batch):
        if len(batch) == 0:
            return None

        obs       = th.as_tensor(np.stack([t.observation.data for t in batch]), dtype=th.float32)
        actions   = th.tensor([t.action for t in batch], dtype=th.int64)  # actions are indices, so int64
        rewards   = th.tensor([t.reward for t in batch], dtype=th.float32)
        next_obs  = th.as_tensor(np.stack([t.next_observation.data for t in batch]), dtype=th.float32)
        dones     = th.tensor([float(t.is_terminal) for t in batch], dtype=th.float32)
        actual_ns = th.tensor([t.n_steps for t in batch], dtype=th.float32)

        # Q-value of the taken action
        q_value = self.online_net(obs).gather(1, actions.unsqueeze(1)).squeeze(1)

        with th.no_grad():
            next_q_state_values = self.target_net(next_obs)
            if self.double_dqn:
                next_actions = th.argmax(self.online_net(next_obs), dim=1, keepdim=True)
            else:
                next_actions = th.argmax(next_q_state_values, dim=1, keepdim=True)
            next_q_value = next_q_state_values.gather(1, next_actions).squeeze(1)
            # Expected Q-value (multi-step return)
            expected_q_value = rewards + (self.gamma ** actual_ns) * next_q_value * (1 - dones)
            if self.error_clamp:
                td_error = th.clamp(expected_q_value - q_value, -self.error_clamp, self.error_clamp)
                expected_q_value = q_value + td_error

        # Backpropagation
        loss = self.loss_fn(q_value, expected_q_value)
        self.optimizer.zero_grad()
        loss.backward()
        self.optimizer.step()

        self.learn_cnt += 1
        if self.learn_cnt % self.target_update_interval == 0:
            self.update_target_network()
            logger.debug("Target network synced after %d updates", self.learn_cnt)

        self.latest_loss = loss.item()
        return self.latest_loss

    def save(self, filepath):
        dir_path = os.path.dirname(filepath)
        if dir_path and not os.path.exists(dir_path):
            os.makedirs(dir_path)
        th.save(self.online_net.state_dict(), filepath)
        logger.info("Model saved to %s", filepath)

    def load(self, filepath):
        self.online_net.load_state_dict(th.load(filepath, weights_only=True))
        self.update_target_network()
