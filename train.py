import os
import json
import argparse

import numpy as np
import torch as th
from runx.logx import logx
from tqdm import tqdm

from config import Config
from mdp import GymMDP, ChainEnv
from qlearning import DQN, GreedyPolicy, HistoryConfiguration, HistoryProcessor, QLearningDiscrete
from qlearning.learning import to_observation
from common import trimmed_mean


def make_mdp(args, seed):
    if args.env_id == 'chain':
        env = ChainEnv(args.chain_length, obs_type=getattr(args, 'obs_type', 'onehot'))
        return GymMDP(env, seed=seed)
    return GymMDP.make(args.env_id, seed=seed)

def make_history_processor(args):
    if getattr(args, 'history', None) is None:
        return None
    return HistoryProcessor(HistoryConfiguration.from_dict(args.history))


def main(sp: argparse.Namespace):
    '1. Hyperparameters'
    args = Config(sp.env, lr=sp.lr, seed=sp.seed, max_step=sp.max_step)
    args.alg = 'dqn'
    th.manual_seed(args.seed)
    logpath = os.path.join(sp.log_dir, 'tensorboard', f"{sp.trial_id}_{args.alg}_{args.env}")

    '2. Preparation'
    logx.initialize(logdir=logpath, coolname=True, tensorboard=True)
    logx.msg(f"logpath ({logpath}) created")

    mdp = make_mdp(args, args.seed)
    valid_mdp = make_mdp(args, args.seed + 1)
    history_processor = make_history_processor(args)
    valid_history_processor = make_history_processor(args)
    if history_processor is not None:
        input_shape = history_processor.conf.shape
    else:
        input_shape = mdp.observation_space.shape

    value_function = DQN(input_shape, mdp.action_space.n, args)
    trainer = QLearningDiscrete(mdp, value_function, args, history_processor, rng=np.random.default_rng(args.seed))

    args_dict = dict(vars(args))
    args_dict['network_shape'] = [(name, list(param.size())) for name, param in value_function.online_net.named_parameters()]
    os.makedirs(logpath, exist_ok=True)
    with open(os.path.join(logpath, 'args.json'), 'w') as file:
        file.write(json.dumps(args_dict, indent=4))

    '3. Functions'
    def to_valid_observation(raw, first=False):
        return to_observation(raw, valid_history_processor, first)

    def validate(epoch):
        policy = GreedyPolicy(value_function)
        val_rewards = [policy.play(valid_mdp, to_valid_observation, args.max_epoch_step) for _ in range(args.valid_num)]
        val_metric = {'tot_reward': trimmed_mean(val_rewards)}
        logx.metric('val', val_metric, epoch)
        value_function.save(f'{logpath}/models/{epoch}.th')
        return val_metric['tot_reward']

    '4. Online training'
    best_result = -np.inf
    best_result_epoch = 0
    pbar = tqdm(total=args.max_step, disable=sp.quiet)
    for stats in trainer.train():
        epoch = trainer.epoch_count
        pbar.update(stats.steps)
        train_metric = {'eps': stats.epsilon, 'tot_reward': stats.reward, 'steps': stats.steps,
                        'loss': stats.loss if stats.loss is not None else 0,
                        'mean_q': 0 if np.isnan(stats.mean_q) else stats.mean_q}
        logx.metric('train', train_metric, epoch)

        # Validation phase
        if epoch % args.valid_interval == 0:
            result = validate(epoch)
            if best_result < result:
                best_result = result
                best_result_epoch = epoch
    pbar.close()

    mdp.close()
    valid_mdp.close()
    return best_result, best_result_epoch


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument('--env', type=str, default='chain', help="config/envs/<env>.yaml on top of config/default.yaml")
    parser.add_argument('--lr', type=float, default=None)
    parser.add_argument('--seed', type=int, default=None)
    parser.add_argument('--max_step', type=int, default=None)
    parser.add_argument('--trial_id', type=str, default='run')
    parser.add_argument('--log_dir', type=str, default='logs')
    parser.add_argument('--quiet', action='store_true')
    sp = parser.parse_args()

    # Run
    result, best_result_epoch = main(sp)
    print(f"Trial ID: {sp.trial_id}, Result: {result}, Best Epoch: {best_result_epoch}")

    # Store results
    os.makedirs(f'{sp.log_dir}/result', exist_ok=True)
    with open(f'{sp.log_dir}/result/{sp.trial_id}.json', 'w') as f:
        json.dump({'trial_id': sp.trial_id, 'result': result, 'best_epoch': best_result_epoch}, f)
