from __future__ import annotations

from pathlib import Path

from murder.maps.singleton import init_maps


def init_maps_for_app() -> None:
    # project root is two levels up from this file: murder/maps/startup.py
    project_root = Path(__file__).resolve().parents[2]
    init_maps(project_root=project_root)
