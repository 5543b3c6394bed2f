# corviz/errors.py
from __future__ import annotations


class CorvizError(Exception):
    """corviz 所有错误的基类。"""


class UnsupportedInputType(CorvizError, TypeError):
    """输入类型无法识别，或 type='full' 这类暂不支持的情形。"""


class InvalidArgument(CorvizError, ValueError):
    """参数取值不合法（缺列、长度不匹配等）。"""


class InvalidState(CorvizError, ValueError):
    """需要对称相关表，但拿到的不是。"""
