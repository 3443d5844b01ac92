"""Вспомогательные утилиты"""
