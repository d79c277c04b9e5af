from .examples import ExampleRegistry, ExampleState
from .files import FileRegistry

__all__ = ["ExampleRegistry", "ExampleState", "FileRegistry"]
