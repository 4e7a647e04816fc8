"""Facility registry for discovering and looking up elevation facilities."""

import logging

from ..facilities.base import BaseFacility

logger = logging.getLogger(__name__)

DEFAULT_FACILITY_MODULES = (
    "privbroker.facilities.sudo",
    "privbroker.facilities.pkexec",
)


def _load_facility_class(module: str) -> tuple[type[BaseFacility], dict[str, str]] | None:
    """Import ``module`` and return the class its FACILITY_INFO names, with the info."""
    mod = __import__(module, fromlist=["FACILITY_INFO"])
    info = getattr(mod, "FACILITY_INFO", None)
    if not isinstance(info, dict) or not info.get("class") or not info.get("name"):
        logger.warning(f"{module} has no usable FACILITY_INFO")
        return None
    facility_class = getattr(mod, info["class"], None)
    if facility_class is None:
        logger.warning(f"{module} names missing class {info['class']}")
        return None
    return facility_class, info


class FacilityRegistry:
    """Central registry of elevation facilities, keyed by ``get_name()``."""

    def __init__(self):
        self._facilities: dict[str, BaseFacility] = {}
        self._info: dict[str, dict[str, str]] = {}

    def register_facility(self, facility: BaseFacility) -> None:
        """Register a facility instance.

        A second facility with an already registered name is ignored.
        """
        name = facility.get_name()
        if name in self._facilities:
            logger.warning(f"Facility '{name}' is already registered. Skipping.")
            return

        self._facilities[name] = facility
        logger.debug(f"Registered facility: {name}")

    def register_facility_class(self, facility_class: type[BaseFacility], *args, **kwargs) -> None:
        """Instantiate ``facility_class`` and register the instance."""
        try:
            instance = facility_class(*args, **kwargs)
        except Exception as e:
            logger.error(f"Failed to instantiate facility {facility_class.__name__}: {e}")
            return
        self.register_facility(instance)

    def get_facility(self, name: str) -> BaseFacility | None:
        return self._facilities.get(name)

    def get_all_facilities(self) -> list[BaseFacility]:
        return list(self._facilities.values())

    def get_available_facilities(self) -> list[BaseFacility]:
        """Get facilities whose program exists on this host."""
        return [f for f in self._facilities.values() if f.is_available()]

    def get_facility_names(self) -> list[str]:
        return list(self._facilities.keys())

    def unregister_facility(self, name: str) -> bool:
        if name in self._facilities:
            del self._facilities[name]
            self._info.pop(name, None)
            logger.debug(f"Unregistered facility: {name}")
            return True
        return False

    def discover_and_register_default_facilities(self) -> None:
        """Register the built-in facilities named by each module's FACILITY_INFO."""
        for module in DEFAULT_FACILITY_MODULES:
            loaded = _load_facility_class(module)
            if loaded is None:
                continue
            facility_class, info = loaded
            self.register_facility_class(facility_class)
            self._info[info["name"]] = info

        logger.debug(f"Registered {len(self._facilities)} default facilities")

    def get_facility_info(self, name: str) -> dict[str, str] | None:
        """Return the FACILITY_INFO of a discovered facility, if any."""
        return self._info.get(name)


# Global default registry instance
_default_registry: FacilityRegistry | None = None


def get_default_registry() -> FacilityRegistry:
    """Get or create the default global facility registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = FacilityRegistry()
        _default_registry.discover_and_register_default_facilities()
    return _default_registry
