"""
drivesync configuration

We read configuration from 2 sources, in order of precedence (higher is more priority)
- Environment variables
- A .env file, either in the current working directory or in a location specified
  by the DRIVESYNC_ENV_FILE environment variable
"""

import functools
from pathlib import Path
from typing import Annotated, Any

from dotenv import load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PREFIX = "drivesync_"


class Settings(BaseSettings):
    env_file: Annotated[
        Path,
        Field(
            description="Location of a .env file (if used) relative to working directory",
        ),
    ] = Path(".env")

    elastic_password: Annotated[
        str | None,
        Field(
            description=(
                "Elasticsearch password. This the password for the 'elastic' user when Elastic xpack security is enabled"
            )
        ),
    ] = None

    elastic_host: Annotated[
        str | None,
        Field(
            description="Elasticsearch host holding the file and folder metadata. Metadata is disabled if not set",
        ),
    ] = None

    elastic_verify_ssl: Annotated[
        bool | None,
        Field(
            description=(
                "Elasticsearch verify SSL (only used if elastic_password is set). Default: True unless host is localhost)"
            ),
        ),
    ] = None

    system_index: Annotated[
        str,
        Field(
            description="Prefix of the elasticsearch indices that store file, folder and rename records",
        ),
    ] = "drivesync"

    s3_host: Annotated[str | None, Field(description="Endpoint of the S3-compatible object store")] = None
    s3_access_key: Annotated[str | None, Field(description="S3 access key id")] = None
    s3_secret_key: Annotated[str | None, Field(description="S3 secret access key")] = None
    s3_region: Annotated[str, Field(description="S3 region")] = "us-east-1"
    s3_bucket: Annotated[
        str,
        Field(description="Bucket holding all owner namespaces (keys are prefixed with the owner id)"),
    ] = "drivesync"

    client_ttl: Annotated[
        float,
        Field(description="Seconds an S3 client is reused for the same owner before it is recreated"),
    ] = 300

    list_cache_ttl: Annotated[float, Field(description="Seconds a directory listing stays cached")] = 120
    search_cache_ttl: Annotated[float, Field(description="Seconds a search result stays cached")] = 60
    cache_max_entries: Annotated[int, Field(description="Maximum number of cached listings and searches")] = 1000

    delete_verify_attempts: Annotated[
        int,
        Field(description="How often a folder deletion is re-checked before the marker is force-deleted"),
    ] = 3
    delete_verify_delay: Annotated[
        float,
        Field(description="Seconds to wait between deletion verification attempts"),
    ] = 1.0

    sync_concurrency: Annotated[
        int,
        Field(description="Maximum number of concurrent existence checks during a sync pass"),
    ] = 16
    sync_interval: Annotated[float, Field(description="Seconds between periodic full syncs of an owner")] = 300
    periodic_sync: Annotated[
        bool,
        Field(description="Start periodic syncs for all known owners when the API starts"),
    ] = False

    @model_validator(mode="after")
    def set_ssl(self: Any) -> "Settings":
        if self.elastic_host and self.elastic_verify_ssl is None:
            self.elastic_verify_ssl = self.elastic_host not in {
                "http://localhost:9200",
                "https://localhost:9200",
            }
        return self

    model_config = SettingsConfigDict(env_prefix=ENV_PREFIX)


@functools.lru_cache()
def get_settings() -> Settings:
    # Read once to find the env_file, then load it without overriding the real environment
    temp = Settings()
    load_dotenv(temp.env_file, override=False)
    return Settings()


def s3_enabled() -> bool:
    settings = get_settings()
    return all([settings.s3_host, settings.s3_access_key, settings.s3_secret_key])


def elastic_enabled() -> bool:
    return bool(get_settings().elastic_host)


if __name__ == "__main__":
    # Echo the settings
    for k, v in get_settings().model_dump().items():
        print(f"{ENV_PREFIX.upper()}{k.upper()}={v}")
