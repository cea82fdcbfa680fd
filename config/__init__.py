import os
import yaml

class ConfigurationError(Exception):
    pass

def load_config(env):
    res = None
    for path in config_file_paths(env):
        if os.path.isfile(path):
            with open(path, 'r', encoding='utf-8') as config:
                new_config = yaml.safe_load(config) or {}
            if res is None:
                res = new_config
            else:
                res.update(new_config)
    if res is None:
        raise ConfigurationError(f"Configuration for env '{env}' not found.")
    return res

def config_file_paths(env):
    """Generate possible config file paths."""
    base_dir = os.path.dirname(__file__)
    paths = [os.path.join(base_dir, 'default.yaml')]
    if env:
        paths.append(os.path.join(base_dir, 'envs', f'{env}.yaml'))
    return paths

def validate_config(args):
    ''' Check the invariants the training loop relies on, raise ConfigurationError otherwise '''
    capacity = getattr(args, 'memory_capacity', 0)
    batch_size = getattr(args, 'batch_size', 0)
    if capacity <= 0:
        raise ConfigurationError(f"memory_capacity must be positive, got {capacity}")
    if batch_size <= 0:
        raise ConfigurationError(f"batch_size must be positive, got {batch_size}")
    if batch_size > capacity:
        raise ConfigurationError(f"batch_size ({batch_size}) exceeds memory_capacity ({capacity})")
    if getattr(args, 'n_step', 1) < 1:
        raise ConfigurationError("n_step must be at least 1")
    if getattr(args, 'update_start', 0) < 0:
        raise ConfigurationError("update_start must be non-negative")
    if getattr(args, 'eps_nb_step', 1) <= 0:
        raise ConfigurationError("eps_nb_step must be positive")
    for name in ('eps_start', 'eps_end'):
        eps = getattr(args, name, 0.0)
        if not 0.0 <= eps <= 1.0:
            raise ConfigurationError(f"{name} must lie in [0, 1], got {eps}")
    return args


class Config:
    def __init__(self, env, **overrides):
        config = load_config(env)
        self.__dict__.update(config)
        self.__dict__.update({k: v for k, v in overrides.items() if v is not None})
        self.env = env
        validate_config(self)
