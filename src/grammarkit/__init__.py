from .dsl import parser, registry, sh, action
from .model import TargetSpec, ShellStep, ActionStep, Pipeline
from .install import Installer, InstallOptions
from .runner import Orchestrator
from .progress import ProgressTracker

__all__ = [
    "parser", "registry", "sh", "action",
    "TargetSpec", "ShellStep", "ActionStep", "Pipeline",
    "Installer", "InstallOptions", "Orchestrator", "ProgressTracker",
]
