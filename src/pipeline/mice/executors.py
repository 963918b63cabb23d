"""Execution of independent chain runs, sequentially or across processes."""

import logging
import os
from abc import ABC, abstractmethod
from multiprocessing import Pool

from tqdm import tqdm

from .exceptions import ChainFailure
from .iteration import IterationController

logger = logging.getLogger(__name__)


def spawn_rngs(parent_rng, n):
    """Spawn ``n`` independent child generators from ``parent_rng``."""
    return parent_rng.spawn(n)


class ChainContext:
    """Read-only inputs every chain run needs; pickled once per task for worker processes."""

    def __init__(self, data, mask, specs, donor_pools, trainer):
        self.data = data
        self.mask = mask
        self.specs = specs
        self.donor_pools = donor_pools
        self.trainer = trainer


def run_chain_task(args):
    """Seed (if new) and iterate one chain. Used for parallelization across chains.

    Any exception aborts this chain only: it is logged and returned as a
    ChainFailure in place of the chain.
    """
    chain, context, iterations = args
    try:
        if chain.working is None:
            chain.seed(context.data, context.mask, list(context.specs), context.donor_pools)
        IterationController(chain, context.specs, context.mask, context.donor_pools, context.trainer).run(iterations)
        return chain.chain_id, chain, None
    except Exception as e:
        logger.error(f"Chain {chain.chain_id} aborted at iteration {chain.iteration + 1}, "
                     f"variable {chain.current_variable}: {type(e).__name__}: {e}")
        return chain.chain_id, None, ChainFailure.from_exception(chain.chain_id, e)


def resolve_n_jobs(n_jobs=None, n_tasks=None):
    """Number of worker processes: explicit value, else NUM_PROCESSES, else min(cpu_count, 4)."""
    if n_jobs is None:
        n_jobs = int(os.environ.get('NUM_PROCESSES', min(os.cpu_count() or 4, 4)))
    n_jobs = max(1, int(n_jobs))
    if n_tasks is not None:
        n_jobs = min(n_jobs, max(1, n_tasks))
    return n_jobs


class ChainExecutor(ABC):
    """Abstract base class for running independent chain tasks.

    All executors must implement:
    - map(fn, tasks): Return [fn(task) for task in tasks], in task order
    - name: Property for descriptive name
    """

    @abstractmethod
    def map(self, fn, tasks):
        pass

    @property
    @abstractmethod
    def name(self):
        pass


class SequentialExecutor(ChainExecutor):
    def map(self, fn, tasks):
        return [fn(task) for task in tqdm(tasks, desc="Chains", leave=False)]

    @property
    def name(self):
        return 'sequential'


class PoolExecutor(ChainExecutor):
    """Runs each task in a ``multiprocessing.Pool`` worker.

    Every worker receives its own pickled copy of the chain and its inputs;
    nothing is shared between chains.
    """

    def __init__(self, n_jobs=None):
        self.n_jobs = n_jobs

    def map(self, fn, tasks):
        tasks = list(tasks)
        processes = resolve_n_jobs(self.n_jobs, len(tasks))
        logger.info(f"Parallelizing {len(tasks)} chains across {processes} processes")
        with Pool(processes=processes) as pool:
            return list(tqdm(pool.imap(fn, tasks), total=len(tasks), desc="Chains", leave=False))

    @property
    def name(self):
        return 'pool'


def make_executor(parallel=False, n_jobs=None):
    if isinstance(parallel, ChainExecutor):
        return parallel
    return PoolExecutor(n_jobs) if parallel else SequentialExecutor()
