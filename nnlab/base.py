# pylint: disable=missing-docstring
from abc import abstractmethod
from typing import Any, Sequence

import numpy as np

from .common.utils import Datum
from .tensor import Tensor


# pylint: disable=invalid-name line-too-long
class BaseNetwork:
    @abstractmethod
    def feed_forward(self, x: Tensor) -> Tensor:
        """
        :param x: input Tensor shaped like the network's input Dimension
        :return: output Tensor of the last layer
        """
        raise NotImplementedError

    @abstractmethod
    def run_batch(self, batch: Sequence[Datum], reg_term: float, eta: float) -> None:
        """
        Run one mini-batch of SGD: accumulate gradients over the batch, then update.

        :param batch: the Datum of this mini-batch
        :param reg_term: L2-regularization term (0 = ignore)
        :param eta: training rate
        """
        raise NotImplementedError

    @abstractmethod
    def evaluate(self, data: Sequence[Datum]) -> float:
        """
        :param data: Datum to classify
        :return: fraction of data classified correctly
        """
        raise NotImplementedError

    def fit(self, training_set: Sequence[Datum], batch_size: int, epochs: int,
            eta: float, lmbda: float = 0.0, **kwargs: Any) -> "BaseNetwork":
        """
        Perform Stochastic Gradient Descent using the given data.

        :param training_set: the training data
        :param batch_size: the size of each mini-batch
        :param epochs: the number of training epochs
        :param eta: the training rate
        :param lmbda: the L2 regularization parameter (0 to ignore)
        :param kwargs: further SGDOptimizer options (shuffle, random_state, evaluate, verbose)
        :return: self
        """
        from .neural_networks.optimizers import SGDOptimizer

        kwargs.setdefault("verbose", getattr(self, "verbose", False))
        optimizer = SGDOptimizer(eta=eta, lmbda=lmbda, batch_size=batch_size,
                                 epochs=epochs, **kwargs)
        self.optimizer_ = optimizer.run(self, training_set)
        return self

    def predict(self, x: Tensor) -> int:
        """
        :param x: input Tensor
        :return: index of the largest output
        """
        return self.feed_forward(x).argmax()

    def score(self, data: Sequence[Datum]) -> float:
        return self.evaluate(data)

    @staticmethod
    def is_correct(result: np.ndarray, answer: np.ndarray) -> bool:
        """
        :param result: flat output of the network
        :param answer: flat expected output
        :return: whether the largest output lands on an (almost) one-hot entry of the answer
        """
        guess = int(np.argmax(result))
        return bool(answer[guess] > 0.99)

    def get_params(self, mode: str = "all") -> Any:
        """
        Get parameters for this network.

        :param mode: Specifies which parameters to return. Options are:
            - "all": Return all attributes.
            - "trainable": Return the (weights, biases) pairs of every layer.
            - "non_trainable": Return all attributes except the layers.
        :return: Dictionary of parameter names mapped to their values.
        """
        if mode == "all":
            return self.__dict__
        if mode == "trainable":
            return {"parameters": [pair for layer in getattr(self, "layers", ())
                                   for pair in layer.parameters()]}
        if mode == "non_trainable":
            return {k: v for k, v in self.__dict__.items() if k != "layers"}

        raise ValueError(
            f"Invalid mode '{mode}'. Choose from 'all', 'trainable', or 'non_trainable'."
        )

    def set_params(self, **params: Any) -> "BaseNetwork":
        """Set the (non-layer) attributes of this network."""
        for param, value in params.items():
            if param == "layers" or not hasattr(self, param):
                raise ValueError(f"Invalid parameter {param}")
            setattr(self, param, value)
        return self
