from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings

from site_feasibility.models.schemas import BuildingConstraints


class Settings(BaseSettings):
    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]
    log_level: str = "INFO"

    # Massing defaults (metres unless noted)
    default_max_building_height: float = 100
    default_min_building_separation: float = 6
    default_max_building_width: float = 18
    default_site_efficiency_ratio: float = 0.6
    default_floor_to_floor_height: float = 3.1
    default_setback_floor_threshold: Optional[int] = None  # e.g. 4 for a podium

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def default_constraints(self) -> BuildingConstraints:
        return BuildingConstraints(
            max_building_height=self.default_max_building_height,
            min_building_separation=self.default_min_building_separation,
            max_building_width=self.default_max_building_width,
            site_efficiency_ratio=self.default_site_efficiency_ratio,
            floor_to_floor_height=self.default_floor_to_floor_height,
            setback_floor_threshold=self.default_setback_floor_threshold,
        )


settings = Settings()
