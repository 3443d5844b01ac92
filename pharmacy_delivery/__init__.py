"""Движок жизненного цикла заказов и назначения доставок для аптечного маркетплейса"""

__version__ = "1.0.0"
