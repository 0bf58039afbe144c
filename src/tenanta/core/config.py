# tenanta/core/config.py
from dotenv import load_dotenv
load_dotenv(".env")
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, computed_field
from typing import Optional

class Settings(BaseSettings):
    # model_config 会自动加载 .env 文件
    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', extra='ignore')

    # 应用配置 (会自动转换类型)
    APP_ENV: str = "production"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # --- Control-plane database ---
    DB_HOST: str = "localhost"
    DB_PORT: int = 5432
    DB_USER: str = "postgres"
    DB_PASSWORD: str = "postgres"
    DB_NAME: str = "tenanta"

    @computed_field
    @property
    def DATABASE_URL(self) -> str:
        return f"postgresql+asyncpg://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"

    # --- 租户数据库 (每个租户一个物理库, 复用控制面的连接目标) ---
    TENANT_DB_MAINTENANCE_NAME: str = Field("postgres", description="Database the admin engine connects to for CREATE/DROP DATABASE.")
    TENANT_DB_POOL_SIZE: int = 5
    TENANT_DB_MAX_OVERFLOW: int = 10
    TENANT_DB_POOL_RECYCLE: int = 3600
    TENANT_DB_CONNECT_TIMEOUT: int = 10
    TENANT_DEFAULT_SCHEMA: str = "public"

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379
    REDIS_PASSWORD: Optional[str] = None
    # namespace 0 保留给 ARQ 队列, 租户从 1 开始分配
    REDIS_DB: int = 0
    REDIS_NAMESPACE_COUNT: int = 16

    # --- SQL console ---
    QUERY_PREVIEW_ROWS: int = 5
    QUERY_HISTORY_RETENTION_DAYS: int = 30

    # Overview 缓存时长 (秒)
    SCHEMA_OVERVIEW_CACHE_TTL: int = 60

settings = Settings()
