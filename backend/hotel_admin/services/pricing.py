"""
套餐定价派生 - 纯函数
Almosafer 积分 = base_price * 10%，Shukran 积分 = base_price * 20%，保留两位小数。
表单实时预览与入库时使用同一个函数，保证两处结果完全一致。
"""
from dataclasses import dataclass, asdict
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict

ALMOSAFER_RATE = Decimal("0.10")
SHUKRAN_RATE = Decimal("0.20")
FIRST_PRICE_MARKUP = Decimal("1.10")

_CENT = Decimal("0.01")
_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class PackagePoints:
    almosafer_points: Decimal
    shukran_points: Decimal

    def as_dict(self) -> Dict[str, Decimal]:
        return asdict(self)


@dataclass(frozen=True)
class PackagePricing:
    """套餐价格块：入库前由 base_price 统一生成"""
    base_price: Decimal
    first_price: Decimal
    almosafer_points: Decimal
    shukran_points: Decimal

    def as_dict(self) -> Dict[str, Decimal]:
        return asdict(self)


def _round2(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def to_price(value: Any) -> Decimal:
    """
    把表单原始输入转成两位小数价格
    非数值、非有限值、负数一律按 0 处理，不抛异常
    """
    if value is None or isinstance(value, bool):
        return _ZERO
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return _ZERO
    if not number.is_finite() or number < 0:
        return _ZERO
    return _round2(number)


def derive_points(base_price: Any) -> PackagePoints:
    """
    由基础价计算两种积分
    积分基于先取两位小数的 base_price 计算（与入库的 Numeric(10,2) 一致），
    因此不足一分的基础价可能与直接对原始输入按比例取整的结果相差 0.01
    """
    base = to_price(base_price)
    return PackagePoints(
        almosafer_points=_round2(base * ALMOSAFER_RATE),
        shukran_points=_round2(base * SHUKRAN_RATE),
    )


def derive_package_pricing(base_price: Any, first_price: Any = None) -> PackagePricing:
    """
    生成完整的套餐价格字段
    first_price 未提供（None 或空串）时取 base_price * 1.10；
    客户端传来的积分值不参与计算
    """
    base = to_price(base_price)
    if first_price is None or (isinstance(first_price, str) and not first_price.strip()):
        first = _round2(base * FIRST_PRICE_MARKUP)
    else:
        first = to_price(first_price)
    points = derive_points(base)
    return PackagePricing(
        base_price=base,
        first_price=first,
        almosafer_points=points.almosafer_points,
        shukran_points=points.shukran_points,
    )
