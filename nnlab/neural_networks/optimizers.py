"""
Stochastic Gradient Descent driver for the networks.
"""
import time

import numpy as np

from ..common.utils import batches


class SGDOptimizer:
    """
    Mini-batch Stochastic Gradient Descent with L2 regularization.

    The driver owns the epoch/batch loop; the network owns the per-batch
    update (``run_batch``) and the accuracy computation (``evaluate``).
    """

    def __init__(self, eta=0.1, lmbda=0.0, batch_size=10, epochs=1,
                 shuffle=False, random_state=None, evaluate=False, verbose=False):
        """
        Initialize SGD optimizer.

        Args:
            eta (float): Learning rate
            lmbda (float): L2 regularization parameter (0 to ignore)
            batch_size (int): Size of each mini-batch
            epochs (int): Number of passes over the training set
            shuffle (bool): Whether to shuffle the training set every epoch
            random_state (int, optional): Seed for shuffling
            evaluate (bool): Whether to compute the training accuracy after
                every epoch
            verbose (bool): Whether to print progress messages
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if epochs < 0:
            raise ValueError(f"epochs must be non-negative, got {epochs}")
        if lmbda < 0:
            raise ValueError(f"lmbda must be non-negative, got {lmbda}")

        self.eta = eta
        self.lmbda = lmbda
        self.batch_size = batch_size
        self.epochs = epochs
        self.shuffle = shuffle
        self.random_state = random_state
        self.evaluate = evaluate
        self.verbose = verbose

        self.reg_term_ = None
        self.history_ = []
        self.n_epochs_ = 0

    def regularization_term(self, n_samples):
        """
        Weight-decay factor ``1 - eta*lmbda/n``, or 0 when not regularizing.

        Args:
            n_samples (int): Size of the whole training set

        Returns:
            float: Factor the weights are multiplied by before every update
        """
        if self.lmbda == 0:
            return 0.0
        return 1 - (self.eta * self.lmbda / n_samples)

    def run(self, network, training_set):
        """
        Train ``network`` on ``training_set``.

        Batches are consecutive slices of the (optionally shuffled) training
        set; a trailing batch smaller than ``batch_size`` is skipped.

        Args:
            network (BaseNetwork): Network to train
            training_set (sequence of Datum): Training data

        Returns:
            self: The optimizer, with ``history_`` filled in when evaluating
        """
        training_set = list(training_set)
        n_samples = len(training_set)
        if n_samples == 0:
            raise ValueError("Cannot train on an empty training set")

        if self.verbose:
            print(f"Performing SGD with:\n\tNum data: {n_samples}"
                  f"\n\tBatch size: {self.batch_size}"
                  f"\n\tEpochs: {self.epochs}"
                  f"\n\tTraining rate: {self.eta}"
                  f"\n\tRegularization rate: {self.lmbda}")

        rng = np.random.default_rng(self.random_state)
        self.reg_term_ = self.regularization_term(n_samples)
        self.history_ = []
        self.n_epochs_ = 0

        for epoch in range(self.epochs):
            if self.verbose:
                print(f"Running epoch {epoch}")
            start_time = time.perf_counter()

            data = training_set
            if self.shuffle:
                data = [training_set[i] for i in rng.permutation(n_samples)]

            for batch in batches(data, self.batch_size):
                network.run_batch(batch, self.reg_term_, self.eta)
            self.n_epochs_ += 1

            if self.verbose:
                print(f"Epoch completed in {time.perf_counter() - start_time:.3f}s")

            # How did we do?
            if self.evaluate:
                self.history_.append(network.evaluate(training_set))

        return self
