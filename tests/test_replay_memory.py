import threading

import numpy as np
import pytest

from config import ConfigurationError
from qlearning.observation import Observation, Transition
from qlearning.replay_memory import ReplayMemory, ReplayMemoryExperienceHandler


def make_transition(i, done=False, reward=None):
    return Transition(Observation([float(i)]), i % 2, float(i) if reward is None else reward, done, Observation([float(i + 1)]))


def test_capacity_must_be_positive():
    with pytest.raises(ConfigurationError):
        ReplayMemory(0)


def test_batch_size_cannot_exceed_capacity():
    with pytest.raises(ConfigurationError):
        ReplayMemoryExperienceHandler(capacity=4, batch_size=5)


def test_memory_never_exceeds_capacity(rng):
    memory = ReplayMemory(5, rng=rng)
    for i in range(12):
        memory.push(make_transition(i))
        assert len(memory) <= 5
    assert len(memory) == 5


def test_full_memory_evicts_oldest_first(rng):
    capacity = 4
    memory = ReplayMemory(capacity, rng=rng)
    transitions = [make_transition(i) for i in range(capacity + 1)]
    for t in transitions[:capacity]:
        memory.push(t)
    assert memory.transitions() == transitions[:capacity]

    memory.push(transitions[capacity])
    assert memory.transitions() == transitions[1:]


def test_sample_returns_min_of_request_and_available(rng):
    memory = ReplayMemory(10, rng=rng)
    assert memory.sample(4) == []
    for i in range(3):
        memory.push(make_transition(i))
    assert len(memory.sample(8)) == 3
    batch = memory.sample(2)
    assert len(batch) == 2
    assert batch[0] is not batch[1]  # without replacement


def test_sample_is_reproducible_with_seed():
    a, b = ReplayMemory(20, rng=np.random.default_rng(7)), ReplayMemory(20, rng=np.random.default_rng(7))
    for i in range(20):
        a.push(make_transition(i))
        b.push(make_transition(i))
    assert [t.reward for t in a.sample(5)] == [t.reward for t in b.sample(5)]


def test_n_step_folds_discounted_rewards(rng):
    memory = ReplayMemory(10, n_step=3, gamma=0.5, rng=rng)
    memory.push(make_transition(0, reward=1.0))
    memory.push(make_transition(1, reward=2.0))
    assert len(memory) == 0
    memory.push(make_transition(2, reward=4.0))

    stored = memory.transitions()
    assert len(stored) == 1
    folded = stored[0]
    assert folded.reward == pytest.approx(1.0 + 0.5 * 2.0 + 0.25 * 4.0)
    assert folded.n_steps == 3
    assert folded.observation == Observation([0.0])
    assert folded.next_observation == Observation([3.0])


def test_n_step_terminal_flushes_queue(rng):
    memory = ReplayMemory(10, n_step=3, gamma=0.5, rng=rng)
    memory.push(make_transition(0, reward=1.0))
    memory.push(make_transition(1, reward=2.0, done=True))

    stored = memory.transitions()
    assert [t.n_steps for t in stored] == [2, 1]
    assert stored[0].reward == pytest.approx(2.0)
    assert all(t.is_terminal for t in stored)


def test_handler_completes_pending_with_next_observation(rng):
    handler = ReplayMemoryExperienceHandler(capacity=10, batch_size=2, rng=rng)
    first, second, final = Observation([0.0]), Observation([1.0]), Observation([2.0])

    handler.add_experience(first, 1, 0.5, False)
    assert handler.get_training_batch_size() == 0

    handler.add_experience(second, 0, 1.0, True)
    handler.set_final_observation(final)
    assert handler.pending is None

    stored = handler.memory.transitions()
    assert stored == [
        Transition(first, 1, 0.5, False, second),
        Transition(second, 0, 1.0, True, final),
    ]


def test_final_observation_without_pending_stores_nothing(rng):
    handler = ReplayMemoryExperienceHandler(capacity=10, batch_size=2, rng=rng)
    handler.set_final_observation(Observation([0.0]))
    assert handler.get_training_batch_size() == 0


def test_empty_handler_generates_empty_batch(rng):
    handler = ReplayMemoryExperienceHandler(capacity=10, batch_size=2, rng=rng)
    assert handler.generate_training_batch() == []
    assert handler.generate_training_batch(5) == []


def test_reset_drops_pending(rng):
    handler = ReplayMemoryExperienceHandler(capacity=10, batch_size=2, rng=rng)
    handler.add_experience(Observation([0.0]), 1, 0.5, False)
    handler.reset()
    handler.add_experience(Observation([5.0]), 0, 0.0, False)
    assert handler.get_training_batch_size() == 0


@pytest.mark.parametrize('capacity', [50, 1000])
def test_handler_is_consistent_under_concurrent_use(capacity):
    handler = ReplayMemoryExperienceHandler(capacity=capacity, batch_size=8, rng=np.random.default_rng(0))
    n_threads, n_adds = 4, 100
    total = n_threads * n_adds
    stop = threading.Event()
    batches = []

    def writer(t):
        for i in range(n_adds):
            ident = t * n_adds + i
            handler.add_experience(Observation([float(ident)]), ident % 2, float(ident), False)

    def reader():
        while not stop.is_set():
            batches.append(len(handler.generate_training_batch()))

    threads = [threading.Thread(target=writer, args=(t,)) for t in range(n_threads)]
    sampler = threading.Thread(target=reader)
    sampler.start()
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()
    stop.set()
    sampler.join()
    handler.set_final_observation(Observation([-1.0]))

    stored = handler.memory.transitions()
    assert handler.get_training_batch_size() == min(total, capacity)
    assert len(stored) == min(total, capacity)
    rewards = [t.reward for t in stored]
    assert len(set(rewards)) == len(rewards)
    # each transition's successor is the next stored transition's state
    for older, newer in zip(stored, stored[1:]):
        assert older.next_observation == newer.observation
    assert stored[-1].next_observation == Observation([-1.0])
    if capacity >= total:
        assert set(rewards) == {float(i) for i in range(total)}
    assert all(0 <= n <= 8 for n in batches)
