"""Builders for Kubernetes resources."""

from .input_provider import (
    DesiredInputProvider,
    InputProviderSpec,
    back_reference_of,
    build_desired_input_provider,
    is_eligible,
)

__all__ = [
    "DesiredInputProvider",
    "InputProviderSpec",
    "back_reference_of",
    "build_desired_input_provider",
    "is_eligible",
]
