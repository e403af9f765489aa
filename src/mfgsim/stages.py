"""Process plans: which stages a product type goes through, for how long, on which resource."""
from __future__ import annotations

from dataclasses import dataclass, field
from numbers import Real
from typing import Any, Iterable, Mapping, Sequence

from mfgsim.dist import distribution
from mfgsim.errors import ConfigurationError

STAGE_NAMES = ("machining", "assembly", "quality_control", "packaging")
UNKNOWN_STAGE = "unknown"

_STAGE_BY_INDEX = dict(enumerate(STAGE_NAMES))

# stage name -> resource type it occupies in the default line
DEFAULT_ROUTING = {
    "machining": "machines",
    "assembly": "operators",
    "quality_control": "operators",
    "packaging": "operators",
}

DEFAULT_CAPACITIES = {"machines": 10, "operators": 5}


def stage_name(index: int) -> str:
    """Return the name of stage ``index``, or ``"unknown"`` outside the known stages."""
    return _STAGE_BY_INDEX.get(index, UNKNOWN_STAGE)


def _check_duration(value: Any, what: str) -> None:
    if isinstance(value, distribution):
        return
    if isinstance(value, bool) or not isinstance(value, Real) or value < 0:
        raise ConfigurationError(f"{what} must be a non-negative number or a distribution, got {value!r}")


@dataclass(frozen=True)
class Stage:
    """One processing step.

    ``processing`` and ``setup`` are numbers or :mod:`mfgsim.dist`
    distributions. ``resource`` is the pool entry the step occupies and
    defaults to the stage name.
    """

    name: str
    processing: Any
    setup: Any = 0.0
    resource: str = ""

    def __post_init__(self):
        _check_duration(self.processing, f"processing duration of stage {self.name!r}")
        _check_duration(self.setup, f"setup duration of stage {self.name!r}")
        if not self.resource:
            object.__setattr__(self, "resource", self.name)

    @property
    def has_setup(self) -> bool:
        return isinstance(self.setup, distribution) or self.setup > 0


@dataclass(frozen=True)
class ProductType:
    """A product family and its ordered process plan.

    Only the first stage may carry a setup duration: it models the machine
    changeover needed to start a unit of this type.
    """

    name: str
    stages: tuple[Stage, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, "stages", tuple(self.stages))
        if not self.stages:
            raise ConfigurationError(f"product type {self.name!r} has no stages")
        for index, stage in enumerate(self.stages[1:], start=1):
            if stage.has_setup:
                raise ConfigurationError(
                    f"only the first stage can have a setup duration; stage {index} ({stage.name!r}) of {self.name!r} has {stage.setup!r}"
                )

    @classmethod
    def from_durations(
        cls,
        name: str,
        durations: Sequence[Any],
        setup: Any = 0.0,
        routing: Mapping[str, str] | None = None,
    ) -> "ProductType":
        """Build a plan whose stages are named by position.

        Parameters
        ----------
        name : str
            Product type name.
        durations : sequence
            Processing duration of each stage, in order.
        setup : float | distribution, optional
            Setup duration of the first stage.
        routing : Mapping[str, str], optional
            Stage name to resource name. Stages missing from the mapping use
            their own name as resource.

        Examples
        --------
        >>> plan = ProductType.from_durations("ProductA", [2.0, 1.5], setup=0.5)
        >>> [s.name for s in plan.stages]
        ['machining', 'assembly']
        """
        routing = routing or {}
        stages = []
        for index, duration in enumerate(durations):
            stage = stage_name(index)
            stages.append(Stage(stage, duration, setup if index == 0 else 0.0, routing.get(stage, stage)))
        return cls(name, tuple(stages))

    def __len__(self) -> int:
        return len(self.stages)


class StageGraph:
    """Static table of product types."""

    def __init__(self, products: Iterable[ProductType] = ()):
        self._products: dict[str, ProductType] = {}
        for product in products:
            self.add(product)

    def add(self, product: ProductType) -> None:
        if product.name in self._products:
            raise ConfigurationError(f"product type {product.name!r} is defined twice")
        self._products[product.name] = product

    def __contains__(self, name: str) -> bool:
        return name in self._products

    def __iter__(self):
        return iter(self._products.values())

    def names(self) -> list[str]:
        return list(self._products)

    def product(self, name: str) -> ProductType:
        try:
            return self._products[name]
        except KeyError:
            raise ConfigurationError(f"unknown product type {name!r}") from None

    def stage_count(self, name: str) -> int:
        return len(self.product(name).stages)

    def stage(self, name: str, index: int) -> Stage:
        """Return stage ``index`` of product type ``name``."""
        stages = self.product(name).stages
        if not 0 <= index < len(stages):
            raise ConfigurationError(f"{name!r} has {len(stages)} stages, stage index {index} requested")
        return stages[index]

    def resources(self) -> list[str]:
        """Resource names used by any stage, in first-use order."""
        seen: dict[str, None] = {}
        for product in self._products.values():
            for stage in product.stages:
                seen.setdefault(stage.resource, None)
        return list(seen)


def default_graph() -> StageGraph:
    """The two product families of the reference line."""
    return StageGraph(
        [
            ProductType.from_durations("ProductA", [2.0, 1.5, 1.0, 1.0], setup=0.5, routing=DEFAULT_ROUTING),
            ProductType.from_durations("ProductB", [3.0, 2.0, 1.5, 1.5], setup=0.75, routing=DEFAULT_ROUTING),
        ]
    )
