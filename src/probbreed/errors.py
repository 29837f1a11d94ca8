"""Exceptions raised by the posterior extraction pipeline."""


class ProbBreedError(Exception):
    """Base class for all probbreed errors."""


class SchemaError(ProbBreedError):
    """Posterior draws do not describe a supported model configuration."""


class DensityError(ProbBreedError):
    """Kernel density estimation cannot be performed on the draws."""


class DiagnosticsError(ProbBreedError):
    """Diagnostic inputs are empty, non-finite or inconsistent."""


class MetadataMismatchError(ProbBreedError):
    """Draw count is inconsistent with chain/iteration/warmup metadata."""
