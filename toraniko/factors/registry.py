"""
FactorRegistry - style factor registry

Two levels of registration:

- factor *classes* are catalogued by name with the ``@register_factor_class()``
  decorator (import registers), so ``create_factor("momentum", config)`` can
  build an instance from configuration alone;
- a ``FactorRegistry`` *instance* maps names to configured factor instances and
  is what the scoring pipeline iterates over.

Duplicate names fail fast with ``DuplicateFactorError``; pass ``replace=True``
to overwrite deliberately (last write wins).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Type

import pandas as pd

from ..constants import DATE_COL, SYMBOL_COL
from ..exceptions import DuplicateFactorError, InvalidConfigError, UnknownFactorError

if TYPE_CHECKING:
    from .base import FactorConfig, StyleFactor

logger = logging.getLogger(__name__)

# Class catalogue: name -> StyleFactor subclass
_factor_classes: Dict[str, Type["StyleFactor"]] = {}


def register_factor_class(name: Optional[str] = None) -> Callable[[Type["StyleFactor"]], Type["StyleFactor"]]:
    """Class decorator adding a StyleFactor subclass to the class catalogue.

    Examples:
        @register_factor_class("beta")
        class BetaFactor(StyleFactor):
            ...
    """

    def decorator(cls: Type["StyleFactor"]) -> Type["StyleFactor"]:
        key = name or getattr(cls, "name", None) or cls.__name__
        existing = _factor_classes.get(key)
        if existing is not None and existing is not cls:
            raise DuplicateFactorError(
                f"factor class name '{key}' already registered by {existing.__module__}.{existing.__qualname__}"
            )
        _factor_classes[key] = cls
        logger.debug("factor class '%s' registered (%s.%s)", key, cls.__module__, cls.__qualname__)
        return cls

    return decorator


def get_factor_class(name: str) -> Type["StyleFactor"]:
    try:
        return _factor_classes[name]
    except KeyError:
        raise UnknownFactorError(
            f"no factor class named '{name}'; known: {sorted(_factor_classes)}"
        ) from None


def registered_factor_classes() -> Dict[str, Type["StyleFactor"]]:
    return dict(_factor_classes)


def create_factor(name: str, config: Optional["FactorConfig"] = None, **kwargs) -> "StyleFactor":
    """Instantiate a catalogued factor class with ``config``."""
    return get_factor_class(name)(config=config, **kwargs)


class FactorRegistry:
    """Mapping from factor name to a configured StyleFactor instance.

    The registry places no limit on the number of style factors.
    """

    def __init__(self, factors: Optional[Iterable["StyleFactor"]] = None):
        self._factors: Dict[str, "StyleFactor"] = {}
        for factor in factors or ():
            self.register(factor)

    def __contains__(self, name: object) -> bool:
        return name in self._factors

    def __len__(self) -> int:
        return len(self._factors)

    def __iter__(self) -> Iterator[str]:
        return iter(self._factors)

    def __repr__(self) -> str:
        return f"FactorRegistry({self.names()})"

    def register(self, factor: "StyleFactor", name: Optional[str] = None, replace: bool = False) -> "StyleFactor":
        """Register ``factor`` under ``name`` (defaults to ``factor.name``).

        Raises:
            DuplicateFactorError: The name is taken and ``replace`` is False
        """
        from .base import StyleFactor

        if not isinstance(factor, StyleFactor):
            raise InvalidConfigError(f"expected a StyleFactor instance, got {type(factor).__name__}")
        key = name or factor.name
        if key in self._factors and not replace:
            raise DuplicateFactorError(f"factor '{key}' is already registered: {self._factors[key]!r}")
        if key in self._factors:
            logger.info("factor '%s' replaced: %r -> %r", key, self._factors[key], factor)
        self._factors[key] = factor
        logger.debug("factor '%s' registered: %r", key, factor)
        return factor

    def register_custom(
        self,
        name: str,
        func: Callable,
        config: Optional["FactorConfig"] = None,
        required_columns: Iterable[str] = (),
        replace: bool = False,
        **kwargs,
    ) -> "StyleFactor":
        """Register a callable ``func(history, config, target_date) -> pd.Series``."""
        from .custom import CustomFactor

        factor = CustomFactor(name, func, config=config, required_columns=required_columns, **kwargs)
        return self.register(factor, replace=replace)

    def unregister(self, name: str) -> "StyleFactor":
        try:
            return self._factors.pop(name)
        except KeyError:
            raise UnknownFactorError(f"factor '{name}' is not registered") from None

    def get(self, name: str) -> "StyleFactor":
        try:
            return self._factors[name]
        except KeyError:
            raise UnknownFactorError(
                f"factor '{name}' is not registered; registered: {self.names()}"
            ) from None

    def names(self) -> List[str]:
        return list(self._factors)

    def compute_style_scores(
        self,
        data: pd.DataFrame,
        names: Optional[Iterable[str]] = None,
        dates: Optional[Iterable] = None,
        date_col: str = DATE_COL,
        symbol_col: str = SYMBOL_COL,
    ) -> pd.DataFrame:
        """Score ``data`` with every (or the named) factor and join the results.

        Returns:
            Wide StyleScores panel ``date | symbol | <name>_score ...``
        """
        from .base import merge_score_panels

        selected = self.names() if names is None else list(names)
        dates = None if dates is None else list(dates)
        panels = []
        for name in selected:
            factor = self.get(name)
            logger.info("computing style scores for '%s'", name)
            panels.append(factor.compute_panel(data, dates=dates))
        return merge_score_panels(panels, date_col=date_col, symbol_col=symbol_col)


def default_registry(configs: Optional[Mapping[str, "FactorConfig"]] = None) -> FactorRegistry:
    """Registry with the built-in momentum, size and value factors.

    Args:
        configs: Optional per-factor configuration overriding the defaults
    """
    # Importing the implementations fills the class catalogue
    from . import momentum, size, value  # noqa: F401

    configs = dict(configs or {})
    registry = FactorRegistry()
    for name in ("momentum", "size", "value"):
        registry.register(create_factor(name, configs.pop(name, None)))
    for name, config in configs.items():
        registry.register(create_factor(name, config))
    return registry
