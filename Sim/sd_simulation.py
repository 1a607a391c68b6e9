# -*- coding: utf-8 -*-
"""
Multi-round execution of a validated stock-and-flow model.

ModelExecution steps a locked Model round by round, records the value of every
level, rate and auxiliary node after each round and offers the results as
numpy arrays, a matplotlib chart and a printed summary.
"""

import warnings
from typing import Callable, Dict, List, Optional

import numpy as np
import matplotlib.pyplot as plt

from sd_config import EngineConfiguration
from sd_errors import ModelStillChangeableException
from sd_model import Model
from sd_nodes import LevelNode


def _unique_labels(nodes) -> List[str]:
    """Node names, with a numeric suffix on repeated names"""
    labels = []
    seen = {}
    for node in nodes:
        name = node.get_node_name()
        seen[name] = seen.get(name, 0) + 1
        labels.append(name if seen[name] == 1 else f"{name} [{seen[name]}]")
    return labels


class ModelExecution:
    """Round-by-round execution driver with value history"""

    def __init__(self, model: Model, config: Optional[EngineConfiguration] = None):
        if model is None:
            raise ValueError("'model' must not be None.")
        if model.is_changeable():
            raise ModelStillChangeableException()

        self.model = model
        self.config = config or EngineConfiguration.default()

        # Level columns are ordered by node name
        self.level_nodes = sorted(model.get_level_nodes(), key=lambda node: node.get_node_name())
        self.rate_nodes = model.get_rate_nodes()
        self.auxiliary_nodes = model.get_auxiliary_nodes()

        self.level_labels = _unique_labels(self.level_nodes)
        self.rate_labels = _unique_labels(self.rate_nodes)
        self.auxiliary_labels = _unique_labels(self.auxiliary_nodes)

        self.round = 0
        self._level_history = []
        self._rate_history = []
        self._auxiliary_history = []
        self.results = {}

        if not self.rate_nodes:
            warnings.warn("Model has no rate nodes; level values will not change.")

        self._record_round()
        self._update_results()

    # ===============================================================================
    # Execution
    # ===============================================================================

    def run(self, rounds: Optional[int] = None,
            progress_callback: Optional[Callable[['ModelExecution'], None]] = None) -> Dict:
        """
        Execute the model for a number of rounds.

        Parameters:
        -----------
        rounds : int, optional
            Rounds to execute, config.default_rounds if not given
        progress_callback : callable, optional
            Called with this execution every config.progress_interval rounds

        Returns:
        --------
        The results dict (see _update_results)
        """
        if rounds is None:
            rounds = self.config.default_rounds
        if isinstance(rounds, bool) or not isinstance(rounds, (int, np.integer)):
            raise TypeError("'rounds' must be an integer.")
        if rounds < 1:
            raise ValueError("'rounds' must be at least 1.")
        if rounds > self.config.max_rounds:
            raise ValueError(f"'rounds' must not exceed {self.config.max_rounds}.")

        print(f"Executing model '{self.model.get_model_name() or 'unnamed'}' for {rounds} rounds...")

        non_finite_reported = False
        for _ in range(rounds):
            self.model.compute_next_values()
            self.round += 1
            self._record_round()

            if self.config.warn_on_non_finite and not non_finite_reported:
                if not np.all(np.isfinite(self._level_history[-1])):
                    non_finite = [label for label, value in zip(self.level_labels, self._level_history[-1])
                                  if not np.isfinite(value)]
                    warnings.warn(f"Round {self.round}: non-finite values in level nodes {non_finite}")
                    non_finite_reported = True

            if progress_callback and self.round % self.config.progress_interval == 0:
                progress_callback(self)

        self._update_results()
        print(f"Execution finished after round {self.round}")
        return self.results

    def _record_round(self):
        self._level_history.append([node.get_current_value() for node in self.level_nodes])
        self._rate_history.append([node.get_current_value() for node in self.rate_nodes])
        self._auxiliary_history.append([node.get_current_value() for node in self.auxiliary_nodes])

    def _history_array(self, rows, width: int) -> np.ndarray:
        return np.array(rows, dtype=float).reshape(len(rows), width)

    def _update_results(self):
        """Rebuild the results dict from the recorded history"""
        levels = self._history_array(self._level_history, len(self.level_nodes))
        rates = self._history_array(self._rate_history, len(self.rate_nodes))
        auxiliaries = self._history_array(self._auxiliary_history, len(self.auxiliary_nodes))

        self.results = {
            'model_name': self.model.get_model_name(),
            'rounds': self.round,
            'time': np.arange(self.round + 1),
            'levels': {label: levels[:, i] for i, label in enumerate(self.level_labels)},
            'rates': {label: rates[:, i] for i, label in enumerate(self.rate_labels)},
            'auxiliaries': {label: auxiliaries[:, i] for i, label in enumerate(self.auxiliary_labels)},
        }

    # ===============================================================================
    # History Access
    # ===============================================================================

    def get_history(self, node) -> np.ndarray:
        """Values of a level, rate or auxiliary node for rounds 0..round"""
        for nodes, rows in ((self.level_nodes, self._level_history),
                            (self.rate_nodes, self._rate_history),
                            (self.auxiliary_nodes, self._auxiliary_history)):
            for i, candidate in enumerate(nodes):
                if candidate is node:
                    return np.array([row[i] for row in rows], dtype=float)
        raise ValueError(f"Node {node!r} is not recorded by this execution.")

    def get_level_history(self, level_node: LevelNode) -> np.ndarray:
        if not isinstance(level_node, LevelNode):
            raise TypeError("'level_node' must be a level node.")
        return self.get_history(level_node)

    def results_as_lists(self) -> Dict:
        """Results with plain lists instead of numpy arrays, ready for JSON"""
        return {
            'model_name': self.results['model_name'],
            'rounds': self.results['rounds'],
            'time': self.results['time'].tolist(),
            'levels': {label: values.tolist() for label, values in self.results['levels'].items()},
            'rates': {label: values.tolist() for label, values in self.results['rates'].items()},
            'auxiliaries': {label: values.tolist() for label, values in self.results['auxiliaries'].items()},
        }

    # ===============================================================================
    # Reporting
    # ===============================================================================

    def plot(self, levels: Optional[List] = None, save_path: Optional[str] = None,
             show: bool = True):
        """
        Chart level values over the executed rounds.

        levels may hold level nodes or their labels; all levels are drawn if
        not given. Returns the matplotlib figure.
        """
        if levels is None:
            selected = list(self.level_labels)
        else:
            selected = []
            for level in levels:
                if isinstance(level, LevelNode):
                    if level not in self.level_nodes:
                        raise ValueError(f"Level node {level!r} is not part of this execution.")
                    selected.append(self.level_labels[self.level_nodes.index(level)])
                elif level in self.results['levels']:
                    selected.append(level)
                else:
                    raise ValueError(f"Unknown level '{level}'.")

        fig, ax = plt.subplots(figsize=(14, 6))
        time_axis = self.results['time']
        for label in selected:
            ax.plot(time_axis, self.results['levels'][label], label=label,
                    linewidth=2, marker='o', markersize=2)

        ax.set_xlabel('Round')
        ax.set_ylabel('Level Value')
        ax.set_title(f"Level Values Over Time: {self.model.get_model_name() or 'unnamed model'}")
        if selected:
            ax.legend()
        ax.grid(True, alpha=0.3)
        fig.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=300, bbox_inches='tight')
            print(f"Plot saved to: {save_path}")

        if show:
            plt.show()

        return fig

    def print_summary(self):
        """Print execution summary"""
        print(f"\n{'='*60}")
        print(f"EXECUTION SUMMARY: {self.model.get_model_name() or 'unnamed model'}")
        print(f"{'='*60}")
        print(f"Rounds: {self.round}")

        print(f"\nLevels ({len(self.level_nodes)}):")
        for label, values in self.results['levels'].items():
            print(f"  {label}: start={values[0]:.4f} current={values[-1]:.4f} "
                  f"min={np.min(values):.4f} max={np.max(values):.4f}")

        print(f"\nRates ({len(self.rate_nodes)}):")
        for label, values in self.results['rates'].items():
            print(f"  {label}: current={values[-1]:.4f} total={np.sum(values[1:]):.4f}")

        if self.auxiliary_nodes:
            print(f"\nAuxiliaries ({len(self.auxiliary_nodes)}):")
            for label, values in self.results['auxiliaries'].items():
                print(f"  {label}: current={values[-1]:.4f}")
