import logging
import os
from abc import ABC, abstractmethod

import matplotlib.pyplot as plt

from bn_io import write_gph
from bn_scoring import ValidatedScore

logger = logging.getLogger(__name__)


class Callback(ABC):
    """Called with operator None before the first step and after the last one; must not modify the model."""

    @abstractmethod
    def call(self, model, operator, score, iteration):
        ...


class CallbackList(Callback):
    def __init__(self, callbacks):
        self.callbacks = [c for c in callbacks if c is not None]

    def call(self, model, operator, score, iteration):
        for callback in self.callbacks:
            callback.call(model, operator, score, iteration)


class LoggingCallback(Callback):
    """Logs the total score after every step (full rescoring, so meant for small networks)."""

    def __init__(self, level=logging.INFO):
        self.level = level

    def call(self, model, operator, score, iteration):
        current = score.score(model)
        if operator is None:
            logger.log(self.level, "Iteration %d: score = %.4f (%d arcs)", iteration, current, model.num_arcs())
        else:
            logger.log(self.level, "Iteration %d: %s, score = %.4f", iteration, operator, current)


class SaveModel(Callback):
    """Writes the structure of every iteration to <folder>/<iteration>.gph."""

    def __init__(self, folder):
        self.folder = folder
        os.makedirs(folder, exist_ok=True)

    def call(self, model, operator, score, iteration):
        write_gph(model, os.path.join(self.folder, f"{iteration:06d}.gph"))


class ScoreHistory(Callback):
    """Records the score (and the validation score, if available) at every call."""

    def __init__(self, validation=True):
        self.validation = validation
        self.iterations = []
        self.scores = []
        self.validation_scores = []
        self.operators = []

    def call(self, model, operator, score, iteration):
        self.iterations.append(iteration)
        self.scores.append(score.score(model))
        self.operators.append(operator)
        if self.validation and isinstance(score, ValidatedScore):
            self.validation_scores.append(score.vscore(model))

    def plot(self, filename):
        fig = plt.figure(figsize=(8, 5))
        plt.plot(self.iterations, self.scores, marker="o", label="score")
        if self.validation_scores:
            plt.plot(self.iterations, self.validation_scores, marker="s", label="validation score")
        plt.xlabel("iteration")
        plt.ylabel("score")
        plt.legend()
        plt.tight_layout()
        plt.savefig(filename, dpi=200)
        plt.close(fig)
