"""二维仿射变换工具（基于 QtGui.QTransform）

约定：本包内所有组合都按“列向量 / 父∘子”的数学记法书写，即 compose(a, b) 表示先应用 b 再应用 a。
QTransform 使用行向量约定，`a * b` 表示先应用 a 再应用 b，因此 compose(a, b) == b * a。
所有函数都返回新的 QTransform，不修改入参。
"""
from __future__ import annotations

import math
from typing import Optional, Tuple

from PyQt6 import QtGui


def identity() -> QtGui.QTransform:
    return QtGui.QTransform()


def translation(dx: float, dy: float) -> QtGui.QTransform:
    return QtGui.QTransform.fromTranslate(float(dx), float(dy))


def scaling(sx: float, sy: Optional[float] = None) -> QtGui.QTransform:
    return QtGui.QTransform.fromScale(float(sx), float(sx if sy is None else sy))


def rotation(degrees: float) -> QtGui.QTransform:
    result = QtGui.QTransform()
    result.rotate(float(degrees))
    return result


def from_components(a: float, b: float, c: float, d: float, e: float, f: float) -> QtGui.QTransform:
    """按 DOMMatrix 的 a..f 记法构造：x' = a*x + c*y + e，y' = b*x + d*y + f。"""
    return QtGui.QTransform(float(a), float(b), float(c), float(d), float(e), float(f))


def components(transform: QtGui.QTransform) -> Tuple[float, float, float, float, float, float]:
    return (
        transform.m11(),
        transform.m12(),
        transform.m21(),
        transform.m22(),
        transform.dx(),
        transform.dy(),
    )


def copy(transform: QtGui.QTransform) -> QtGui.QTransform:
    return QtGui.QTransform(transform)


def compose(*transforms: QtGui.QTransform) -> QtGui.QTransform:
    """compose(a, b, c) == a∘b∘c：先应用 c，最后应用 a。"""
    result = QtGui.QTransform()
    for transform in transforms:
        result = transform * result
    return result


def invert(transform: QtGui.QTransform) -> Optional[QtGui.QTransform]:
    """求逆；奇异矩阵返回 None。"""
    inverse, invertible = transform.inverted()
    if not invertible:
        return None
    return inverse


def scale_about_point(center_x: float, center_y: float, factor: float) -> QtGui.QTransform:
    """translate(center)∘scale(factor)∘translate(-center)"""
    return compose(
        translation(center_x, center_y),
        scaling(factor),
        translation(-center_x, -center_y),
    )


def map_point(transform: QtGui.QTransform, x: float, y: float) -> Tuple[float, float]:
    mapped_x, mapped_y = transform.map(float(x), float(y))
    return float(mapped_x), float(mapped_y)


def translation_of(transform: QtGui.QTransform) -> Tuple[float, float]:
    return float(transform.dx()), float(transform.dy())


def is_close(left: QtGui.QTransform, right: QtGui.QTransform, tolerance: float = 1e-9) -> bool:
    """逐分量比较（绝对误差），用于视觉连续性判断。"""
    return all(
        math.isclose(a, b, rel_tol=0.0, abs_tol=tolerance)
        for a, b in zip(components(left), components(right))
    )
