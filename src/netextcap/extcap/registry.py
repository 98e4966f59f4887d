"""Interface name to owning helper registry."""

import threading
from collections.abc import Iterator

class InterfaceRegistry:
    """Mapping from helper interface name to the path of the helper that owns it.

    Rebuilt by every discovery pass. The first registration for a name wins
    and is never overwritten. Mutating passes are serialized through `lock`.
    """

    def __init__(self) -> None:
        self._owners: dict[str, str] = {}
        self.lock = threading.RLock()

    def reset(self) -> None:
        """Remove every entry."""
        with self.lock:
            self._owners.clear()

    def lookup(self, name: str | None) -> str | None:
        """Return the owning helper path for a name, or None."""
        if not name:
            return None
        return self._owners.get(name)

    def register(self, name: str, path: str) -> bool:
        """Record path as owner of name unless name is already claimed.

        Returns:
            True if the mapping was inserted
        """
        with self.lock:
            if name in self._owners:
                return False
            self._owners[name] = path
            return True

    def owns(self, name: str | None, path: str) -> bool:
        """Check whether path is the recorded owner of name."""
        owner = self.lookup(name)
        return owner is not None and owner == path

    def items(self) -> list[tuple[str, str]]:
        return list(self._owners.items())

    def __contains__(self, name: object) -> bool:
        return name in self._owners

    def __len__(self) -> int:
        return len(self._owners)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._owners))


_registry: InterfaceRegistry | None = None


def get_registry() -> InterfaceRegistry:
    """Get the process-wide registry instance."""
    global _registry
    if _registry is None:
        _registry = InterfaceRegistry()
    return _registry
