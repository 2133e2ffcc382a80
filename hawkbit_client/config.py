from pydantic import field_validator
from pydantic_settings import BaseSettings

CHECKSUM_NAMES = ("md5", "sha1", "sha256")


class Settings(BaseSettings):
    """Client settings loaded from environment variables."""

    # hawkBit server
    hawkbit_url: str = "http://localhost:8080"
    hawkbit_tenant: str = "DEFAULT"
    hawkbit_controller_id: str = ""
    hawkbit_key_token: str = ""

    # Logging
    hawkbit_log_level: str = "info"

    # HTTP client timeouts (seconds)
    hawkbit_http_connect_timeout: float = 5.0
    hawkbit_http_read_timeout: float = 120.0

    # Downloads
    hawkbit_download_dir: str = "./download"

    # Enabled artifact checksum algorithms, comma separated (md5, sha1, sha256)
    hawkbit_checksums: str = "md5,sha1,sha256"

    model_config = {"env_prefix": "", "case_sensitive": False, "env_file": ".env", "env_file_encoding": "utf-8"}

    @field_validator("hawkbit_checksums")
    @classmethod
    def _known_checksums(cls, value: str) -> str:
        names = [name.strip().lower() for name in value.split(",") if name.strip()]
        unknown = [name for name in names if name not in CHECKSUM_NAMES]
        if unknown:
            raise ValueError(
                f"unknown checksum algorithm(s) {', '.join(unknown)}; expected one of {', '.join(CHECKSUM_NAMES)}"
            )
        return ",".join(names)


settings = Settings()
