"""
Metric catalog: the single registry of factors and metrics.

Built once from the config dicts and validated up front, so scoring code
never has to second-guess weights or polarity.
"""

import logging
from typing import Dict, List, Optional

from factor_model.utils.config import FACTOR_WEIGHTS, METRICS
from factor_model.utils.exceptions import ConfigurationError
from factor_model.utils.models import Factor, Metric

logger = logging.getLogger(__name__)

WEIGHT_TOLERANCE = 1e-6


class MetricCatalog:
    """
    Lookup of metric -> factor, polarity and weight.

    Example:
        >>> catalog = MetricCatalog()
        >>> catalog.factor_of('pe')
        'Valuation'
        >>> catalog.is_lower_better('pe')
        True
    """

    def __init__(
        self,
        factor_weights: Optional[Dict[str, float]] = None,
        metrics_config: Optional[Dict[str, Dict]] = None
    ):
        factor_weights = factor_weights or FACTOR_WEIGHTS
        metrics_config = metrics_config or METRICS

        self._factors: Dict[str, Factor] = {}
        self._metrics: Dict[str, Metric] = {}

        for factor_name, weight in factor_weights.items():
            self._factors[factor_name] = Factor(name=factor_name, weight=float(weight))

        for factor_name, metrics in metrics_config.items():
            if factor_name not in self._factors:
                raise ConfigurationError(
                    f"Metrics defined for unknown factor '{factor_name}'",
                    key=factor_name
                )
            for metric_name, info in metrics.items():
                if metric_name in self._metrics:
                    raise ConfigurationError(
                        f"Metric '{metric_name}' defined twice",
                        key=metric_name
                    )
                self._metrics[metric_name] = Metric(
                    name=metric_name,
                    factor=factor_name,
                    weight=float(info.get('weight', 0)),
                    lower_is_better=bool(info.get('lower_is_better', False)),
                    display_name=info.get('display_name', metric_name),
                    description=info.get('description', '')
                )
                self._factors[factor_name].metrics.append(metric_name)

        self.validate()
        logger.debug(
            f"Catalog loaded: {len(self._factors)} factors, "
            f"{len(self._metrics)} metrics"
        )

    def validate(self):
        """
        Check the weight structure.

        Raises:
            ConfigurationError: factor weights do not sum to 1.0, or a
                factor's metric weights do not sum to its own weight
        """
        total = sum(f.weight for f in self._factors.values())
        if abs(total - 1.0) > WEIGHT_TOLERANCE:
            raise ConfigurationError(f"Factor weights sum to {total}, not 1.0")

        for factor in self._factors.values():
            if not factor.metrics:
                continue
            metric_total = sum(self._metrics[m].weight for m in factor.metrics)
            if abs(metric_total - factor.weight) > WEIGHT_TOLERANCE:
                raise ConfigurationError(
                    f"Metric weights of {factor.name} sum to {metric_total}, "
                    f"expected {factor.weight}",
                    key=factor.name
                )

    def metric(self, name: str) -> Metric:
        try:
            return self._metrics[name]
        except KeyError:
            raise ConfigurationError(f"Unknown metric '{name}'", key=name) from None

    def factor(self, name: str) -> Factor:
        try:
            return self._factors[name]
        except KeyError:
            raise ConfigurationError(f"Unknown factor '{name}'", key=name) from None

    def factor_of(self, metric_name: str) -> str:
        return self.metric(metric_name).factor

    def is_lower_better(self, metric_name: str) -> bool:
        return self.metric(metric_name).lower_is_better

    def metrics_for_factor(self, factor_name: str) -> List[str]:
        return list(self.factor(factor_name).metrics)

    def has_metric(self, name: str) -> bool:
        return name in self._metrics

    @property
    def factor_weights(self) -> Dict[str, float]:
        return {name: f.weight for name, f in self._factors.items()}

    @property
    def metric_names(self) -> List[str]:
        return list(self._metrics)

    @property
    def factor_names(self) -> List[str]:
        return list(self._factors)
