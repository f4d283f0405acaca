"""Front end for compiled .NET assemblies."""

from .frontend import AssemblyFrontEnd
from .metadata import find_assemblies, load_assembly

__all__ = ["AssemblyFrontEnd", "find_assemblies", "load_assembly"]
