from . import cart

__all__ = [
    "cart",
]
