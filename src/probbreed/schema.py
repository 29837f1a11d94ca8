"""Effect schema for Bayesian multi-environment trial models.

The model family fits genotype, location and genotype-by-location effects,
optionally extended with:
- replicate and/or block effects (experimental design)
- region effects and genotype-by-region interaction, or
- year effects and genotype-by-year interaction
- heterogeneous residual variances (one per environment)

Region and year paths are mutually exclusive.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from probbreed.errors import SchemaError


class Effect(Enum):
    """Structural effects, in the order they are reported.

    Each member carries its sampler code, canonical name and the name of the
    scale parameter whose square is the variance component.
    """

    REPLICATE = ("r", "replicate")
    BLOCK = ("b", "block")
    REGION = ("m", "region")
    LOCATION = ("l", "location")
    YEAR = ("t", "year")
    GENOTYPE = ("g", "genotype")
    GEN_LOC = ("gl", "gen.loc")
    GEN_YEAR = ("gt", "gen.year")
    GEN_REG = ("gm", "gen.reg")

    def __init__(self, code: str, canonical: str) -> None:
        self.code = code
        self.canonical = canonical

    @property
    def scale_name(self) -> str:
        return f"s_{self.code}"

    @classmethod
    def from_code(cls, code: str) -> "Effect":
        return _BY_CODE[code]


_BY_CODE = {effect.code: effect for effect in Effect}

EFFECT_CODES = frozenset(_BY_CODE)
CANONICAL_NAMES = {effect.code: effect.canonical for effect in Effect}

RESIDUAL_SCALE = "sigma"
HETEROGENEITY_FLAG = "sigma_vec"


class Structure(Enum):
    """Supported environment structures."""

    LOCATION = "location"
    REGION = "region"
    YEAR = "year"


_STRUCTURE_EFFECTS = {
    Structure.LOCATION: frozenset(),
    Structure.REGION: frozenset({Effect.REGION, Effect.GEN_REG}),
    Structure.YEAR: frozenset({Effect.YEAR, Effect.GEN_YEAR}),
}

_REQUIRED = frozenset({Effect.GENOTYPE, Effect.LOCATION, Effect.GEN_LOC})


@dataclass(frozen=True)
class EffectSchema:
    """Active effects of a fitted model and its residual variance mode.

    Attributes:
        structure: Environment structure (location only, region or year)
        replicate: Whether a replicate effect was fitted
        block: Whether a block effect was fitted
        n_environments: Number of environment-specific residual variances,
            or None when the residual variance is homogeneous
    """

    structure: Structure = Structure.LOCATION
    replicate: bool = False
    block: bool = False
    n_environments: int | None = None

    def __post_init__(self) -> None:
        if self.n_environments is not None and self.n_environments < 1:
            raise ValueError(
                f"n_environments must be >= 1, got {self.n_environments}"
            )

    @property
    def heterogeneous_residual(self) -> bool:
        return self.n_environments is not None

    @property
    def effects(self) -> tuple[Effect, ...]:
        """Active effects in reporting order."""
        active = set(_REQUIRED) | _STRUCTURE_EFFECTS[self.structure]
        if self.replicate:
            active.add(Effect.REPLICATE)
        if self.block:
            active.add(Effect.BLOCK)
        return tuple(effect for effect in Effect if effect in active)

    @property
    def codes(self) -> tuple[str, ...]:
        return tuple(effect.code for effect in self.effects)

    @property
    def canonical_names(self) -> tuple[str, ...]:
        return tuple(effect.canonical for effect in self.effects)

    @property
    def residual_names(self) -> tuple[str, ...]:
        """Row labels for the residual variance(s)."""
        if self.n_environments is None:
            return ("error",)
        return tuple(f"error_env{i}" for i in range(1, self.n_environments + 1))

    @classmethod
    def from_names(
        cls,
        names: Iterable[str],
        residual_shape: tuple[int, ...] | None = None,
    ) -> "EffectSchema":
        """Resolve the schema from the variable names returned by the sampler.

        Args:
            names: Variable names present in the posterior output
            residual_shape: Shape of the residual scale draws. Required when
                the heterogeneity flag is present; its second dimension gives
                the number of environments.

        Returns:
            EffectSchema describing the fitted model

        Raises:
            SchemaError: If required effects are missing or the effect set
                matches no supported structure
        """
        names = set(names)
        active = {Effect.from_code(code) for code in names & EFFECT_CODES}

        missing = sorted(effect.code for effect in _REQUIRED - active)
        if missing:
            raise SchemaError(
                f"Required effects missing from posterior: {missing} "
                f"(found {sorted(names & EFFECT_CODES)})"
            )

        optional = active - _REQUIRED - {Effect.REPLICATE, Effect.BLOCK}
        structure = None
        for candidate, effects in _STRUCTURE_EFFECTS.items():
            if optional == effects:
                structure = candidate
                break
        if structure is None:
            raise SchemaError(
                "Environment effects do not match a supported structure: "
                f"{sorted(effect.code for effect in optional)} "
                "(expected none, {'m', 'gm'} or {'t', 'gt'})"
            )

        n_environments = None
        if HETEROGENEITY_FLAG in names:
            if residual_shape is None or len(residual_shape) != 2:
                raise SchemaError(
                    f"Heterogeneous residual mode requires '{RESIDUAL_SCALE}' "
                    f"draws of shape (draws, environments), got {residual_shape}"
                )
            n_environments = int(residual_shape[1])

        return cls(
            structure=structure,
            replicate=Effect.REPLICATE in active,
            block=Effect.BLOCK in active,
            n_environments=n_environments,
        )
