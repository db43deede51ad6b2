from .domain import Domain
from .surface import Surface, LocalSurface, GlobalSurface

__all__ = ["Domain", "Surface", "LocalSurface", "GlobalSurface"]
