from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_STATUS_PORT = 5757


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="GROBOT_", extra="ignore")

    app_name: str = "grobot"
    # None = system local time
    timezone: Optional[str] = None

    # Sampling
    initial_sensor_readings: int = Field(default=8, ge=1)
    sensor_readings: int = Field(default=3, ge=1)
    sensor_reading_interval: float = Field(default=4.0, ge=0)
    cycle_interval: float = Field(default=90.0, ge=0)
    history_size: int = Field(default=8, ge=2)

    # Bus
    bus_capacity: int = Field(default=16, ge=1)

    # Hardware: "sim" for development, "pi" on the Raspberry Pi
    sensor_mode: str = "sim"
    actuator_mode: str = "sim"
    sensor_pin: int = 4           # DHT22 data, BCM
    light_pin: int = 26           # relay CH1, BCM
    fan_pin: int = 18             # hardware PWM0, BCM
    fan_pwm_frequency: float = 25_000.0
    # Simulated sensor fault injection, 0.0-1.0 per read
    sim_failure_rate: float = Field(default=0.0, ge=0, le=1)
    sim_glitch_rate: float = Field(default=0.0, ge=0, le=1)

    # Status broadcast
    status_port: int = DEFAULT_STATUS_PORT
    listen_addr: str = "0.0.0.0"
    broadcast_addr: str = "255.255.255.255"

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "grobot.log"

    # HTTP status API, 0 = disabled
    http_host: str = "0.0.0.0"
    http_port: int = 0
