"""Pydantic схемы для валидации входных данных и результатов операций"""
