"""
Configuration de l'application / Application configuration.
Utilise pydantic-settings pour charger depuis .env ou variables d'environnement.
Les paramètres tarifaires des organisations ne passent jamais par ici :
ils accompagnent chaque appel / Organization pricing settings travel with each call.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Tarif Engine VTC"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = True

    # CORS - origines autorisées / allowed origins
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    # Rate Limiting
    RATE_LIMIT_PRICING: str = "120/minute"
    RATE_LIMIT_DEFAULT: str = "60/minute"

    # Estimation sans itinéraire routier / Estimate without a routed itinerary
    ROAD_DISTANCE_FACTOR: float = 1.3
    DEFAULT_AVERAGE_SPEED_KMH: float = 50.0
    DEFAULT_DISTANCE_KM: float = 10.0
    DEFAULT_DURATION_MINUTES: int = 30

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
