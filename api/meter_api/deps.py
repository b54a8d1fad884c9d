
from typing import Optional

from fastapi import Request

from .pipeline import IngestionPipeline
from .repos.mongo_repo import MongoRepo
from .repos.redis_repo import RedisRepo


def get_mongo(request: Request) -> MongoRepo:
    return request.app.state.mongo


def get_cache(request: Request) -> Optional[RedisRepo]:
    return request.app.state.cache


def get_pipeline(request: Request) -> IngestionPipeline:
    return request.app.state.pipeline
