from typing import Any, Callable, Dict


class ComponentRegistry:
    """Name → factory map; each component is built on first access and cached."""

    def __init__(self):
        self._factories: Dict[str, Callable[[], Any]] = {}
        self._instances: Dict[str, Any] = {}

    def register(self, name: str, factory: Callable[[], Any]) -> None:
        if name in self._instances:
            raise ValueError(f"component {name!r} already built")
        self._factories[name] = factory

    def get(self, name: str) -> Any:
        if name not in self._instances:
            if name not in self._factories:
                raise KeyError(f"unknown component {name!r}")
            self._instances[name] = self._factories[name]()
        return self._instances[name]

    def __contains__(self, name: str) -> bool:
        return name in self._factories

    def built(self) -> Dict[str, Any]:
        return dict(self._instances)
