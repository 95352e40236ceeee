"""
Simcomp - composable, time-stepped component models.

This package lets you define calculation components with parameters and
variables, wire them into a model over a shared timeline, and run the
model step by step with every component reading its inputs from the
components that ran before it.
"""

__version__ = "0.1.0"

from .errors import (
    SimcompError,
    SimcompDefinitionError,
    SimcompBindingError,
    SimcompRuntimeError,
    ErrorCode,
    ErrorDetail,
    error_code_to_string,
)
from .types import (
    VariableDef,
    ParameterDef,
    ItemInfo,
)
from .dimensions import Dimension
from .clock import (
    Clock,
    FixedTimestep,
    VariableTimestep,
    Timestep,
    gettime,
    is_first,
    is_last,
    is_time,
)
from .arrays import TimestepArray, ConnectedArray
from .parameters import (
    ScalarModelParameter,
    ArrayModelParameter,
    InternalParameterConnection,
    ExternalParameterConnection,
)
from .defs import ComponentDef, CompositeComponentDef, ModelDef
from .decorators import defcomp, Parameter, Variable, Index
from .build import build
from .instances import ComponentInstance, CompositeInstance, ModelInstance
from .model import Model, ComponentReference, VariableReference
from .marginal import MarginalModel
from .resolve import ParameterTarget, resolve_parameter, apply_value


__all__ = [
    # Main classes
    "Model",
    "MarginalModel",
    "ComponentReference",
    "VariableReference",
    # Definitions
    "ComponentDef",
    "CompositeComponentDef",
    "ModelDef",
    "VariableDef",
    "ParameterDef",
    "ItemInfo",
    "Dimension",
    # Declarative authoring
    "defcomp",
    "Parameter",
    "Variable",
    "Index",
    # Time
    "Clock",
    "FixedTimestep",
    "VariableTimestep",
    "Timestep",
    "gettime",
    "is_first",
    "is_last",
    "is_time",
    # Storage and parameters
    "TimestepArray",
    "ConnectedArray",
    "ScalarModelParameter",
    "ArrayModelParameter",
    "InternalParameterConnection",
    "ExternalParameterConnection",
    # Build and run
    "build",
    "ComponentInstance",
    "CompositeInstance",
    "ModelInstance",
    # Sampling support
    "ParameterTarget",
    "resolve_parameter",
    "apply_value",
    # Errors
    "SimcompError",
    "SimcompDefinitionError",
    "SimcompBindingError",
    "SimcompRuntimeError",
    "ErrorCode",
    "ErrorDetail",
    "error_code_to_string",
]
