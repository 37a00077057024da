"""
Composite cache keys
"""

from dataclasses import dataclass
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class QueryKey:
    """
    Resource kind plus sorted query parameters.

    Two keys built from the same kind and parameters are equal and hash
    alike, whatever order the parameters were given in. Parameters whose
    value is None are left out.
    """
    kind: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def build(cls, kind: str, **params) -> 'QueryKey':
        return cls(kind, tuple(sorted((name, value) for name, value in params.items() if value is not None)))

    def get(self, name: str, default: Any = None) -> Any:
        for param, value in self.params:
            if param == name:
                return value
        return default

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    def __str__(self) -> str:
        if not self.params:
            return self.kind
        query = "&".join(f"{name}={value}" for name, value in self.params)
        return f"{self.kind}?{query}"
