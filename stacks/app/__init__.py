from .main_stack import MainStack
from .outputs import OutputManager

__all__ = ["MainStack", "OutputManager"]
