"""Application settings using Pydantic BaseSettings."""

from pydantic_settings import BaseSettings
from typing import Optional, List, Dict


class Settings(BaseSettings):
    """Application settings for the draw analysis system."""

    # ========================================
    # DATABASE CONFIGURATION
    # ========================================
    database_url: str = "sqlite:///./la_diaria.db"
    test_database_url: str = "sqlite:///:memory:"

    db_pool_recycle: int = 1800
    db_pool_pre_ping: bool = True
    db_echo: bool = False
    db_batch_size: int = 500

    # ========================================
    # REDIS CONFIGURATION
    # ========================================
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: int = 5
    redis_socket_connect_timeout: int = 5
    cache_enabled: bool = True

    cache_ttl_selection: int = 1200   # 20 minutos
    cache_ttl_patterns: int = 2400    # 40 minutos
    cache_ttl_profiles: int = 3600    # 1 hora

    # ========================================
    # API CONFIGURATION
    # ========================================
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = False
    cors_origins: Optional[str] = "*"
    rate_limit_enabled: bool = True
    rate_limit_requests_per_minute: int = 60

    # ========================================
    # SCHEDULER CONFIGURATION
    # ========================================
    enable_scheduler: bool = False
    scheduler_timezone: str = "America/Managua"
    rebuild_schedule: str = "15 22 * * *"  # Después del sorteo de 9PM

    # ========================================
    # LOGGING CONFIGURATION
    # ========================================
    log_level: str = "INFO"
    log_format: str = "json"

    # ========================================
    # DRAW DOMAIN
    # ========================================
    number_range_min: int = 0
    number_range_max: int = 99
    turnos: List[str] = ["11AM", "3PM", "9PM"]
    slot_offset_hours: int = 6
    regional_countries: List[str] = ["ni", "nicaragua", "sv", "el salvador"]
    guide_path: str = "data/guia_suenos.json"

    # ========================================
    # PROFILE BUILDER
    # ========================================
    profile_recent_limit: int = 6
    profile_gap_history: int = 30
    profile_hypothesis_details: int = 5
    recency_decay_days: float = 10.0
    prediction_weights: Dict[str, float] = {
        "frecuencia": 0.35,
        "recencia": 0.35,
        "hipotesis": 0.2,
        "contexto": 0.1,
    }
    prediction_top: int = 9

    # ========================================
    # PATTERN DETECTOR
    # ========================================
    pattern_window_days: int = 120
    pattern_min_samples: int = 30
    pattern_summary_draws: int = 9
    repetition_burst_days: int = 14
    transition_recent_days: int = 21
    transition_lookahead: int = 2

    # ========================================
    # BIAS CLASSIFIER
    # ========================================
    tier_window_days: int = 120
    narrative_window_strong: int = 30
    narrative_window_moderate: int = 45
    turn_repeat_window_days: int = 30
    max_fuertes: int = 12
    max_moderados: int = 20
    max_debiles: int = 36

    # ========================================
    # FINAL SELECTION
    # ========================================
    selection_weights: Dict[str, float] = {
        "fuerte": 0.6,
        "moderado": 0.25,
        "debil": 0.1,
        "reciente": 0.05,
    }
    selection_top: int = 5
    selection_secondary_max: int = 3
    selection_secondary_min_score: float = 0.3
    selection_recent_days: int = 10
    wildcard_regional_hours: int = 24

    # ========================================
    # MODE EVALUATOR
    # ========================================
    mode_lookahead_draws: int = 2
    mode_lookahead_days: int = 3
    mode_support_attempts: int = 5
    mode_recent_draws: int = 3
    mode_min_confidence: float = 0.3

    # ========================================
    # TRIGGER RELATIONS / PEGA-3
    # ========================================
    trigger_late_factor: float = 2.0
    pega3_recency_decay_days: float = 7.0
    pega3_recent_days: int = 14
    pega3_max_fuertes: int = 12
    pega3_max_moderados: int = 20
    pega3_max_debiles: int = 32
    pega3_secondary_min_score: float = 0.35

    # ========================================
    # DEVELOPMENT/DEBUG SETTINGS
    # ========================================
    debug: bool = False
    testing: bool = False

    model_config = {
        "env_file": ".env",
        "case_sensitive": False,
        "extra": "ignore",
        "validate_assignment": False,
        "protected_namespaces": ()
    }


# Global settings instance
settings = Settings()
