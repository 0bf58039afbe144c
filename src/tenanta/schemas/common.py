# tenanta/schemas/common.py

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Generic, TypeVar, Optional

T = TypeVar('T')  # 定义泛型类型

class JsonResponse(BaseModel, Generic[T]):
    data: T
    msg: str = "success"
    status: int = 200

class JsonFaildResponse(BaseModel, Generic[T]):
    data: Optional[T] = None
    msg: str = "error"
    status: int = 400

class MsgResponse(BaseModel):
    msg: str = "success"

class CamelModel(BaseModel):
    """对外契约字段使用 camelCase, 同时接受 snake_case 输入。"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)
