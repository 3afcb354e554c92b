from __future__ import annotations

from pathlib import Path

from murder.maps.registry import MapRegistry, load_maps


_MAPS: MapRegistry | None = None


def init_maps(*, project_root: Path) -> MapRegistry:
    """Load maps once and cache them.

    Safe to call multiple times; subsequent calls return the already loaded registry.
    """

    global _MAPS
    if _MAPS is None:
        _MAPS = load_maps(root=project_root)
    return _MAPS


def reset_maps_for_tests() -> None:
    global _MAPS
    _MAPS = None


def get_maps() -> MapRegistry:
    if _MAPS is None:
        raise RuntimeError("Maps not initialized. Call init_maps() at startup.")
    return _MAPS
